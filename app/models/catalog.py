"""Catalog models: service types, products and equipment kits"""
from app import db
from .base import BaseModel

SERVICE_CATEGORIES = ('installation', 'maintenance', 'repair', 'diagnostic', 'emergency')


class ServiceType(BaseModel):
    __tablename__ = 'service_types'

    name = db.Column(db.String(255), nullable=False, unique=True)
    category = db.Column(db.String(50), nullable=False, index=True)
    description = db.Column(db.Text)
    images = db.Column(db.JSON, default=list)  # [{url, description}]
    sub_types = db.Column(db.JSON, default=list)  # [{id, name, description, imageUrl}]

    def __repr__(self):
        return f'<ServiceType {self.name}>'

    def to_summary(self):
        return {'id': self.id, 'name': self.name, 'category': self.category}


class Product(BaseModel):
    __tablename__ = 'products'

    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text)
    price = db.Column(db.Float, nullable=False, default=0.0)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f'<Product {self.name} x{self.quantity}>'


class Equipment(BaseModel):
    """
    Equipment kit - a bundle of products sold and installed as one unit
    """
    __tablename__ = 'equipments'

    name = db.Column(db.String(255), nullable=False, unique=True)
    description = db.Column(db.Text)
    price = db.Column(db.Float, nullable=False, default=0.0)
    components = db.Column(db.JSON, default=list)  # ordered [{productId, quantity}]
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self):
        return f'<Equipment {self.name}>'

    def to_dict(self, exclude=None):
        """Components are returned with the product's name and price"""
        data = super().to_dict(exclude=exclude)
        product_ids = [c.get('productId') for c in self.components or []]
        products = {}
        if product_ids:
            products = {p.id: p for p in Product.query.filter(Product.id.in_(product_ids)).all()}

        components = []
        for component in self.components or []:
            product = products.get(component.get('productId'))
            components.append({
                'productId': component.get('productId'),
                'quantity': component.get('quantity'),
                'product': {'id': product.id, 'name': product.name, 'price': product.price} if product else None,
            })
        data['components'] = components
        return data
