from sqlalchemy import Column, Integer, String, DateTime, Float, BigInteger, JSON, Index
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

class BattleReport(Base):
    __tablename__ = 'battle_reports'

    id = Column(Integer, primary_key=True, autoincrement=True)
    parent_hash = Column(String(128), nullable=True, index=True)
    governor_id = Column(BigInteger, nullable=False, index=True)

    # Denormalized from the payload for filtering
    self_primary_commander_id = Column(Integer, nullable=False, default=0)
    enemy_player_id = Column(BigInteger, nullable=True)  # Only set for single-encounter reports

    # Raw mail time as stored by the client (seconds, millis or micros)
    mail_time = Column(Float, nullable=True)
    event_time_millis = Column(BigInteger, nullable=True, index=True)

    payload = Column(JSON, nullable=False)

    # Metadata
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        Index('ix_battle_reports_governor_time', 'governor_id', 'event_time_millis', 'id'),
    )

    def __repr__(self):
        return f"<BattleReport(id={self.id}, governor_id={self.governor_id}, event_time_millis={self.event_time_millis})>"
