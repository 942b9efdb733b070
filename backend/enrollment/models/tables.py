import secrets
import string

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata

ID_ALPHABET = string.ascii_letters + string.digits
WEEKDAY_ENUM = Enum(
    'sunday', 'monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday',
    name='weekday',
)


def generate_id(length: int = 12) -> str:
    return ''.join(secrets.choice(ID_ALPHABET) for _ in range(length))


class PickupLocations(Base):
    __tablename__ = 'pickup_locations'

    id = Column(Text, primary_key=True, default=lambda: generate_id(8))
    name = Column(Text, nullable=False)
    street_address = Column(Text)
    postal_code = Column(Text)
    parcels_max_per_day = Column(Integer)
    default_slot_duration_minutes = Column(Integer, nullable=False, server_default=text('15'))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    outside_hours_count = Column(Integer, nullable=False, server_default=text('0'))

    schedules = relationship('PickupLocationSchedules', back_populates='location')
    food_parcels = relationship('FoodParcels', back_populates='pickup_location')


class PickupLocationSchedules(Base):
    __tablename__ = 'pickup_location_schedules'

    id = Column(Text, primary_key=True, default=lambda: generate_id(8))
    pickup_location_id = Column(
        ForeignKey('pickup_locations.id', ondelete='CASCADE'), nullable=False
    )
    name = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    location = relationship('PickupLocations', back_populates='schedules')
    days = relationship(
        'PickupLocationScheduleDays',
        back_populates='schedule',
        cascade='all, delete-orphan',
    )


class PickupLocationScheduleDays(Base):
    __tablename__ = 'pickup_location_schedule_days'
    __table_args__ = (
        UniqueConstraint('schedule_id', 'weekday'),
    )

    id = Column(Integer, primary_key=True)
    schedule_id = Column(
        ForeignKey('pickup_location_schedules.id', ondelete='CASCADE'), nullable=False
    )
    weekday = Column(WEEKDAY_ENUM, nullable=False)
    is_open = Column(Integer, nullable=False, server_default=text('0'))
    opening_time = Column(Text)
    closing_time = Column(Text)

    schedule = relationship('PickupLocationSchedules', back_populates='days')


class Households(Base):
    __tablename__ = 'households'

    id = Column(Text, primary_key=True, default=lambda: generate_id(8))
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    phone_number = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    food_parcels = relationship('FoodParcels', back_populates='household')


class FoodParcels(Base):
    __tablename__ = 'food_parcels'
    __table_args__ = (
        # One active parcel per household, location and slot; soft-deleted
        # rows do not block the slot.
        Index(
            'food_parcels_household_location_time_active_unique',
            'household_id',
            'pickup_location_id',
            'pickup_date_time_earliest',
            'pickup_date_time_latest',
            unique=True,
            sqlite_where=text('deleted_at IS NULL'),
            postgresql_where=text('deleted_at IS NULL'),
        ),
    )

    id = Column(Text, primary_key=True, default=lambda: generate_id(12))
    household_id = Column(ForeignKey('households.id', ondelete='CASCADE'), nullable=False)
    pickup_location_id = Column(ForeignKey('pickup_locations.id'), nullable=False)
    # Naive UTC
    pickup_date_time_earliest = Column(DateTime, nullable=False)
    pickup_date_time_latest = Column(DateTime, nullable=False)
    is_picked_up = Column(Integer, nullable=False, server_default=text('0'))
    deleted_at = Column(DateTime)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    household = relationship('Households', back_populates='food_parcels')
    pickup_location = relationship('PickupLocations', back_populates='food_parcels')
