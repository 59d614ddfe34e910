"""Who may do what. Every role decision in the services goes through here."""


class Policy:
    @staticmethod
    def can_create_booking(user):
        return user is not None

    @staticmethod
    def can_create_field(user):
        return user is not None and user.role in {"owner", "admin"}

    @staticmethod
    def can_manage_field(user, field):
        if user is None or field is None:
            return False
        if user.role == "admin":
            return True
        return user.role == "owner" and field.owner_id == user.id

    @staticmethod
    def can_view_dashboard(user):
        return Policy.can_create_field(user)

    @staticmethod
    def sees_all_fields(user):
        return user is not None and user.role == "admin"

    @staticmethod
    def can_view_booking(user, booking):
        if user is None or booking is None:
            return False
        if booking.user_id == user.id:
            return True
        return Policy.can_manage_field(user, booking.field)

    @staticmethod
    def can_attach_proof(user, booking):
        return user is not None and booking is not None and booking.user_id == user.id
