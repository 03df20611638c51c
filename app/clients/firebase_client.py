import logging
from typing import Any, Tuple

import firebase_admin
from firebase_admin import credentials, firestore_async, storage

from ..config import Settings
from .movie_client import MOVIES_COLLECTION, MovieClient

logger = logging.getLogger(__name__)

TOKEN_URI = 'https://oauth2.googleapis.com/token'
APP_NAME = 'movies-api'


def build_credentials(settings: Settings) -> credentials.Certificate:
    return credentials.Certificate({
        'type': 'service_account',
        'project_id': settings.FIREBASE_PROJECT_ID,
        'client_email': settings.FIREBASE_CLIENT_EMAIL,
        'private_key': settings.FIREBASE_PRIVATE_KEY,
        'token_uri': TOKEN_URI,
    })


def initialize_firebase(settings: Settings) -> Tuple[Any, Any]:
    """
    Initialize the Firebase app and return the async Firestore client and
    the poster bucket.

    Re-uses the app if it was already initialized in this process.
    """
    try:
        app = firebase_admin.get_app(APP_NAME)
    except ValueError:
        app = firebase_admin.initialize_app(
            build_credentials(settings),
            {
                'projectId': settings.FIREBASE_PROJECT_ID,
                'storageBucket': settings.storage_bucket,
            },
            name=APP_NAME,
        )
        logger.info("Firebase initialized for project %s (bucket %s)",
                    settings.FIREBASE_PROJECT_ID, settings.storage_bucket)

    db = firestore_async.client(app)
    bucket = storage.bucket(app=app)
    return db, bucket


def create_movie_client(settings: Settings) -> MovieClient:
    db, bucket = initialize_firebase(settings)
    return MovieClient(db.collection(MOVIES_COLLECTION), bucket)
