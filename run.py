import os
from henhouse import create_app
from henhouse.auth import create_bootstrap_admin

# Create the Flask app instance
app = create_app()

with app.app_context():
    create_bootstrap_admin(os.getenv('HENHOUSE_ADMIN_USERNAME'), os.getenv('HENHOUSE_ADMIN_PASSWORD'))

if __name__ == "__main__":
    # Run the app in debug mode for development
    app.run(debug=os.getenv('FLASK_DEBUG', '1') == '1', host="0.0.0.0", port=int(os.getenv('PORT', '8080')))
