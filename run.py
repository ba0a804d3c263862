#!/usr/bin/env python3
"""Entry point for the tournament bracket API."""
import os
from tournament_api.app import create_app

config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5001))
    app.logger.info('Tournament API starting on http://localhost:%s', port)
    app.run(host='0.0.0.0', port=port, debug=(config_name == 'development'))
