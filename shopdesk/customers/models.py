from datetime import datetime

from shopdesk import db


class Customer(db.Model):
    __tablename__ = 'customers'

    id         = db.Column(db.Integer, primary_key=True)
    name       = db.Column(db.String(100), nullable=False)
    phone      = db.Column(db.String(20), unique=True, nullable=False, index=True)
    email      = db.Column(db.String(120), nullable=True)
    address    = db.Column(db.Text, nullable=True)
    gstin      = db.Column(db.String(20), nullable=True)
    state_name = db.Column(db.String(60), nullable=True)
    code       = db.Column(db.Integer, nullable=False, default=0)    # GST state code
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    orders = db.relationship('Order', backref='customer', lazy='dynamic')

    def to_dict(self) -> dict:
        return {
            'id':         self.id,
            'name':       self.name,
            'phone':      self.phone,
            'email':      self.email,
            'address':    self.address,
            'gstin':      self.gstin,
            'state_name': self.state_name,
            'code':       self.code,
        }

    def __repr__(self):
        return f"<Customer {self.name} ({self.phone})>"
