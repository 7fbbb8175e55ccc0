import os

os.environ.setdefault("ENV", "production")

from wholesale import create_app  # noqa: E402

app = create_app()
