from fieldrent import create_app

app = create_app()
