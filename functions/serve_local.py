#!/usr/bin/env python3
"""Local development server for CostScan Python functions.

This server mimics the Firebase Functions emulator endpoints so the web client
can run against local Firestore/Storage emulators.

Usage:
    cd functions
    source venv/bin/activate
    python serve_local.py

This will start a Flask server that handles:
- POST /<project>/us-central1/create_project, get_project, list_projects, ...
- POST /<project>/us-central1/upload_project_files (multipart or base64 JSON)
- POST /<project>/us-central1/start_processing
- POST /<project>/us-central1/get_localized_estimate, list_countries
- POST /<project>/us-central1/project_assistant
- POST /<project>/us-central1/submit_annotation, list_annotations, collect_training_data,
  get_training_stats, export_training_data
"""

import logging
import os

# Set environment for local development
os.environ.setdefault('FUNCTIONS_EMULATOR', 'true')
os.environ.setdefault('GCLOUD_PROJECT', 'costscan-dev')
os.environ.setdefault('FIRESTORE_EMULATOR_HOST', '127.0.0.1:8081')
os.environ.setdefault('FIREBASE_STORAGE_EMULATOR_HOST', '127.0.0.1:9199')

import structlog
from flask import Flask, request, jsonify
from flask_cors import CORS

from config.settings import settings

structlog.configure(
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.log_level.upper(), logging.INFO)
    ),
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
)

# Import the main module after setting env vars
from main import (
    create_project,
    get_project,
    list_projects,
    delete_project,
    reset_project,
    upload_project_files,
    delete_project_file,
    start_processing,
    get_localized_estimate,
    list_countries,
    project_assistant,
    submit_annotation,
    list_annotations,
    collect_training_data,
    get_training_stats,
    export_training_data,
)

app = Flask(__name__)
CORS(app)

FIREBASE_PROJECT = os.environ['GCLOUD_PROJECT']


class MockRequest:
    """Mock Firebase request object to wrap Flask request."""

    def __init__(self, flask_request):
        self._request = flask_request
        self._json_data = None
        self.method = flask_request.method
        self.headers = dict(flask_request.headers)
        self.content_type = flask_request.content_type
        self.files = flask_request.files
        self.form = flask_request.form

    def get_json(self, force=False, silent=False):
        if self._json_data is None:
            self._json_data = self._request.get_json(force=force, silent=silent) or {}
        return self._json_data


def wrap_firebase_function(firebase_fn):
    """Wrap a Firebase function to work with Flask."""
    def wrapper():
        mock_req = MockRequest(request)
        response = firebase_fn(mock_req)
        return response.get_data(), response.status_code, dict(response.headers)
    return wrapper


ENDPOINTS = {
    "create_project": create_project,
    "get_project": get_project,
    "list_projects": list_projects,
    "delete_project": delete_project,
    "reset_project": reset_project,
    "upload_project_files": upload_project_files,
    "delete_project_file": delete_project_file,
    "start_processing": start_processing,
    "get_localized_estimate": get_localized_estimate,
    "list_countries": list_countries,
    "project_assistant": project_assistant,
    "submit_annotation": submit_annotation,
    "list_annotations": list_annotations,
    "collect_training_data": collect_training_data,
    "get_training_stats": get_training_stats,
    "export_training_data": export_training_data,
}

for _name, _fn in ENDPOINTS.items():
    app.add_url_rule(
        f"/{FIREBASE_PROJECT}/us-central1/{_name}",
        endpoint=_name,
        view_func=wrap_firebase_function(_fn),
        methods=['POST', 'OPTIONS'],
    )


# Health check
@app.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok', 'service': 'costscan-python-functions'})


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5002))
    print(f"""
╔════════════════════════════════════════════════════════════════╗
║  CostScan Python Functions - Local Development Server          ║
╠════════════════════════════════════════════════════════════════╣
║                                                                ║
║  Server running on: http://127.0.0.1:{port}                     ║
║                                                                ║
║  Endpoints (POST /{FIREBASE_PROJECT}/us-central1/<name>):
""" + "\n".join(f"║  • {name}" for name in ENDPOINTS) + """
║                                                                ║
║  Set USE_FIREBASE_EMULATORS=true to accept userId in bodies.   ║
╚════════════════════════════════════════════════════════════════╝
""")
    app.run(host='127.0.0.1', port=port, debug=True, threaded=True)
