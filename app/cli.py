"""
Flask CLI commands:  flask init-db / flask seed
"""
import click
from flask import current_app

from app import db

DEFAULT_SERVICE_TYPES = [
    {'name': 'Installation de borne de recharge', 'category': 'installation',
     'description': 'Installation complète de bornes de recharge pour véhicules électriques'},
    {'name': 'Maintenance préventive', 'category': 'maintenance',
     'description': 'Contrôle périodique et entretien des bornes'},
    {'name': 'Dépannage', 'category': 'repair',
     'description': 'Réparation de bornes défectueuses'},
    {'name': 'Diagnostic électrique', 'category': 'diagnostic',
     'description': "Diagnostic de l'installation électrique existante"},
    {'name': "Intervention d'urgence", 'category': 'emergency',
     'description': 'Intervention rapide en cas de panne bloquante'},
]


def seed_database():
    """Create the default admin, service types and site settings; existing rows are kept"""
    from app.models import ServiceType, SiteCustomization, User
    from app.models.site_customization import DEFAULT_CUSTOMIZATION

    created = []
    email = current_app.config['ADMIN_EMAIL'].lower()
    if not User.query.filter_by(email=email).first():
        admin = User(email=email, first_name='Admin', last_name='ELECTRIBORNE', role='admin', is_active=True)
        admin.set_password(current_app.config['ADMIN_PASSWORD'])
        db.session.add(admin)
        created.append(f'admin user {email}')

    for data in DEFAULT_SERVICE_TYPES:
        if not ServiceType.query.filter_by(name=data['name']).first():
            db.session.add(ServiceType(images=[], sub_types=[], **data))
            created.append(f'service type {data["name"]}')

    for key, value in DEFAULT_CUSTOMIZATION.items():
        if not SiteCustomization.query.filter_by(key=key).first():
            db.session.add(SiteCustomization(key=key, value=value, category=key))
            created.append(f'site customization {key}')

    db.session.commit()
    return created


def register_commands(app):

    @app.cli.command('init-db')
    def cli_init_db():
        """Create all database tables."""
        db.create_all()
        click.echo('Database tables created.')

    @app.cli.command('seed')
    def cli_seed():
        """Insert default admin, service types and site settings."""
        db.create_all()
        actions = seed_database()
        for action in actions:
            click.echo('  -> created {}'.format(action))
        click.echo('Seed complete ({} new rows).'.format(len(actions)))
