from fieldrent.extensions import db
from fieldrent.models.base import PKType


class FieldImage(db.Model):
    __tablename__ = "field_images"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    field_id = db.Column(PKType, db.ForeignKey("fields.id", ondelete="CASCADE"), nullable=False, index=True)
    file_path = db.Column(db.String(500), nullable=False)
    caption = db.Column(db.String(255), nullable=True)

    field = db.relationship("Field", back_populates="images")
