import os

from shopdesk import create_app, db

config_name = os.environ.get('FLASK_ENV', 'production')
app = create_app(config_name)

# Tables are created on first boot; seed-demo stays a manual CLI step
if os.environ.get('AUTO_CREATE_TABLES', 'true').lower() == 'true':
    with app.app_context():
        db.create_all()

if __name__ == "__main__":
    app.run()
