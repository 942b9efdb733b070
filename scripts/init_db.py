import sys, pathlib
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1] / "backend"))

from sqlalchemy import text
from enrollment.config import BASE_DIR, settings
from enrollment.database import SessionLocal, engine
from enrollment.models import Base
from enrollment.models.tables import PickupLocations


def main():
    if settings.database_url.startswith("sqlite:///./"):
        (BASE_DIR / "data").mkdir(exist_ok=True)

    Base.metadata.create_all(engine)

    db = SessionLocal()
    try:
        print("DB OK:", db.execute(text("SELECT 1")).scalar())
        print("Pickup locations:", db.query(PickupLocations).count())
    finally:
        db.close()


if __name__ == "__main__":
    main()
