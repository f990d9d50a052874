"""Application configuration package"""
from .settings import config, Config

__all__ = ['config', 'Config']
