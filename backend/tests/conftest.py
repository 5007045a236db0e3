import os, sys, pytest
# Ensure backend directory is on path so 'sleepdesk' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
import sleepdesk
from sleepdesk import create_app, get_db
from sleepdesk.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import sleepdesk.models.audit  # noqa: F401
import sleepdesk.models.webhook  # noqa: F401
import sleepdesk.models.record  # noqa: F401


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'AUDIT_SINK': 'inline',
        'SHOPIFY_WEBHOOK_SECRET': '',
        'ROLE_POLICY_FILE': '',
        'WEBHOOK_MAX_ATTEMPTS': 3,
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
    })
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture(autouse=True)
def clean_tables(app_instance):
    """Every test starts from empty tables (the in-memory DB is shared by the session)."""
    with app_instance.app_context():
        session = get_db()
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.expunge_all()
    yield
    sleepdesk.SessionLocal.remove()


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def services(app_instance):
    with app_instance.app_context():
        yield app_instance.extensions['sleepdesk']


@pytest.fixture()
def store(services):
    return services.store
