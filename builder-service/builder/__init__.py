"""
Expo app skeleton builder.
"""
