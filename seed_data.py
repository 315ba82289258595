"""Script to load the demo catalog and default admin into the configured store"""
import os

from bookhaven import create_app
from bookhaven.seed import seed_demo_data
from bookhaven.storage import get_storage

# create_app would seed on its own; leave that to this script
os.environ['SEED_DEMO_DATA'] = 'False'
app = create_app(os.environ.get('FLASK_CONFIG'))

with app.app_context():
    email = app.config['ADMIN_EMAIL']
    if seed_demo_data(get_storage(), email, app.config['ADMIN_PASSWORD']):
        print("Sample data added successfully!")
        print(f"\nAdmin login: {email}")
    else:
        print("Admin account already exists, nothing to seed")
