"""
PostPurchase Pro entry point.
"""
import os
import sys
import logging

# Default to production for deployment
config_name = os.getenv('FLASK_ENV', 'production')

try:
    from postpurchase import create_app
    app = create_app(config_name)
except Exception:
    logging.getLogger('postpurchase').exception('[PostPurchase] FATAL ERROR during app creation')
    sys.exit(1)

logging.getLogger('postpurchase').info(
    f"[PostPurchase] Config: {config_name}, routes: {len(list(app.url_map.iter_rules()))}"
)

if __name__ == '__main__':
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=os.getenv('FLASK_ENV') == 'development'
    )
