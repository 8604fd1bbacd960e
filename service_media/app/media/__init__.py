"""
Media records: models, lifecycle transitions and object links.
"""
