# medassist/api/__init__.py
