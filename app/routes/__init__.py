"""API blueprints, one per resource under /api"""
