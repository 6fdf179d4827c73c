"""Forms for the purchase blueprint."""

from flask import current_app
from flask_wtf import FlaskForm  # type: ignore
from flask_wtf.file import FileField, FileRequired  # type: ignore
from wtforms import StringField
from wtforms.validators import DataRequired, ValidationError


class ProofUploadForm(FlaskForm):
    """Multipart form carrying a payment or purchase receipt."""

    class Meta:
        csrf = False

    file = FileField("Proof", validators=[FileRequired()])
    groupBuyId = StringField("Group Buy", validators=[DataRequired()])
    organizerId = StringField("Organizer", validators=[DataRequired()])

    def validate_file(self, field):
        """Accept images and PDFs up to the configured size."""
        mimetype = field.data.mimetype or ""
        if not mimetype.startswith("image/") and mimetype != "application/pdf":
            raise ValidationError("File must be an image or PDF")

        stream = field.data.stream
        stream.seek(0, 2)
        size = stream.tell()
        stream.seek(0)
        if size > current_app.config["MAX_PROOF_SIZE"]:
            max_mb = current_app.config["MAX_PROOF_SIZE"] // (1024 * 1024)
            raise ValidationError(f"File size must be less than {max_mb}MB")
