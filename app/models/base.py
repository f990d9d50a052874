"""
Base model with common fields and methods
"""
import uuid
from datetime import date, datetime

from app import db
from app.utils.helpers import utcnow, to_camel


def generate_uuid():
    return str(uuid.uuid4())


class BaseModel(db.Model):
    """Abstract base model with common fields"""
    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self, exclude=None):
        """
        Convert model to a dictionary with camelCase keys

        Args:
            exclude (list): Column names (snake_case) to leave out

        Returns:
            dict: Model as dictionary
        """
        exclude = exclude or []
        data = {}

        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.name)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            data[to_camel(column.name)] = value

        return data

    def update_from(self, data, fields):
        """Copy camelCase keys present in data onto the matching snake_case attributes"""
        for field in fields:
            key = to_camel(field)
            if key in data:
                setattr(self, field, data[key])

    @classmethod
    def get_or_404(cls, object_id, message=None):
        from app.errors import NotFoundError
        obj = db.session.get(cls, object_id) if object_id else None
        if obj is None:
            raise NotFoundError(message or f'{cls.__name__} not found')
        return obj
