from tesipedia.extensions import db
import uuid

ROLE_ADMIN = "admin"
ROLE_WRITER = "writer"
ROLE_CLIENT = "client"


def gen_uuid(prefix=None):
    uid = str(uuid.uuid4())
    return f"{prefix}-{uid}" if prefix else uid


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("usr"))
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(255))
    role = db.Column(db.String(50), nullable=False, default=ROLE_CLIENT)

    @property
    def is_admin(self):
        return (self.role or "").lower() == ROLE_ADMIN

    @property
    def is_writer(self):
        return (self.role or "").lower() == ROLE_WRITER
