"""Site customization model - CMS-style key/value content"""
import time

from app import db
from app.utils.helpers import utcnow
from .base import BaseModel

# Keys holding lists of items, and how generated ids are prefixed
LIST_COLLECTIONS = {
    'services': ('services', None, 'service'),
    'blog': ('blogPosts', None, 'post'),
    'vehicles': ('simulator', 'vehicleBrands', 'brand'),
    'savings': ('simulator', 'savingsInfo', 'savings'),
}

DEFAULT_CUSTOMIZATION = {
    'general': {
        'siteName': 'ELECTRIBORNE',
        'siteTagline': 'Solutions de recharge pour véhicules électriques',
        'logo': None,
        'favicon': None,
        'primaryColor': '#3295a2',
        'secondaryColor': '#1888b0',
    },
}


class SiteCustomization(BaseModel):
    __tablename__ = 'site_customizations'

    key = db.Column(db.String(100), nullable=False, unique=True)
    value = db.Column(db.JSON)
    category = db.Column(db.String(50), nullable=False, default='general')
    description = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self):
        return f'<SiteCustomization {self.key}>'

    @classmethod
    def get_all(cls):
        """All entries folded into a single {key: value} dict"""
        return {c.key: c.value for c in cls.query.order_by(cls.key).all()}

    @classmethod
    def upsert(cls, key, value):
        entry = cls.query.filter_by(key=key).first()
        if entry is None:
            entry = cls(key=key)
            db.session.add(entry)
        entry.value = value
        return entry

    @classmethod
    def update_customization(cls, data):
        for key, value in data.items():
            cls.upsert(key, value)
        db.session.flush()
        return cls.get_all()

    @classmethod
    def reset(cls):
        cls.query.delete()
        return cls.update_customization(DEFAULT_CUSTOMIZATION)

    # -- list collections (services, blog posts, simulator data) --

    @classmethod
    def list_items(cls, collection):
        key, sub_key, _ = LIST_COLLECTIONS[collection]
        entry = cls.query.filter_by(key=key).first()
        value = entry.value if entry else None
        if sub_key:
            value = (value or {}).get(sub_key) if isinstance(value, dict) else None
        return list(value or [])

    @classmethod
    def _store_items(cls, collection, items):
        key, sub_key, _ = LIST_COLLECTIONS[collection]
        if sub_key:
            entry = cls.query.filter_by(key=key).first()
            container = dict(entry.value) if entry and isinstance(entry.value, dict) else {}
            container[sub_key] = items
            cls.upsert(key, container)
        else:
            cls.upsert(key, items)

    @classmethod
    def add_item(cls, collection, item_data):
        _, _, prefix = LIST_COLLECTIONS[collection]
        items = cls.list_items(collection)
        item = dict(item_data)
        item['id'] = f'{prefix}-{int(time.time() * 1000)}'
        existing_ids = {i.get('id') for i in items}
        while item['id'] in existing_ids:
            item['id'] = f'{prefix}-{int(item["id"].rsplit("-", 1)[1]) + 1}'
        items.append(item)
        cls._store_items(collection, items)
        return item

    @classmethod
    def update_item(cls, collection, item_id, item_data):
        items = cls.list_items(collection)
        for index, item in enumerate(items):
            if item.get('id') == item_id:
                updated = dict(item_data)
                updated['id'] = item_id
                updated['updatedAt'] = utcnow().isoformat()
                items[index] = updated
                cls._store_items(collection, items)
                return updated
        return None

    @classmethod
    def delete_item(cls, collection, item_id):
        items = cls.list_items(collection)
        remaining = [i for i in items if i.get('id') != item_id]
        if len(remaining) == len(items):
            return False
        cls._store_items(collection, remaining)
        return True
