from app.database import Base, engine
from app.models import profile, message, sticker  # noqa: F401  (register tables)

print("Creating database tables...")
Base.metadata.create_all(bind=engine)
print("✅ All tables created successfully!")
