"""
Base templates the generated files are merged onto.
"""

from builder.services.templates.expo_base_template import (
    expo_base_template,
    ExpoBaseTemplateProvider,
    default_package_json,
    default_app_json,
    default_babel_config,
    default_root_layout,
)

__all__ = [
    'expo_base_template',
    'ExpoBaseTemplateProvider',
    'default_package_json',
    'default_app_json',
    'default_babel_config',
    'default_root_layout',
]
