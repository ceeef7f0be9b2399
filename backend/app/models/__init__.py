# Import all models here
from app.models.document import Document
