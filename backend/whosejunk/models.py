from whosejunk import db


class SeasonCounter(db.Model):
    __tablename__ = 'season_counter'
    key = db.Column(db.String(32), primary_key=True)
    season = db.Column(db.Integer, nullable=False, default=1)

    def to_dict(self):
        return {
            'key': self.key,
            'season': self.season,
        }


def attempt_key(season, uid):
    """Document key of a player's attempt in one season."""
    return f"{int(season)}:{uid}"


class Attempt(db.Model):
    __tablename__ = 'attempt'
    __table_args__ = (
        db.UniqueConstraint('uid', 'season', name='uq_attempt_uid_season'),
    )
    key = db.Column(db.String(160), primary_key=True)
    uid = db.Column(db.String(128), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=True)
    email = db.Column(db.String(256), nullable=True)
    score = db.Column(db.Integer, nullable=False, default=0)
    season = db.Column(db.Integer, nullable=False, index=True)
    submitted_at = db.Column(db.DateTime, nullable=True, server_default=db.func.now())

    def to_dict(self):
        return {
            'key': self.key,
            'uid': self.uid,
            'name': self.name,
            'email': self.email,
            'score': self.score,
            'season': self.season,
            'submitted_at': self.submitted_at.isoformat() if self.submitted_at else None,
        }
