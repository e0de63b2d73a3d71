import pytest
from decimal import Decimal
import uuid

from barpos import create_app
from barpos.database import create_schema, drop_schema, get_session
from barpos.models import Event, Beverage, BarTable


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestingConfig')
    return app


@pytest.fixture(autouse=True)
def app_context(app):
    """Fresh schema and an active app context for every test."""
    with app.app_context():
        create_schema()
        yield
        get_session().remove()
        drop_schema()


@pytest.fixture(scope='function')
def session(app_context):
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def manager_id():
    """Opaque id of the calling manager."""
    return f'manager-{str(uuid.uuid4())[:8]}'


@pytest.fixture(scope='function')
def other_manager_id():
    """Second manager for isolation tests."""
    return f'manager-{str(uuid.uuid4())[:8]}'


@pytest.fixture(scope='function')
def event(session, manager_id):
    """Active event with a budget of 100.00."""
    event = Event(
        manager_id=manager_id,
        name='Summer Wedding',
        location='Garden Hall',
        budget=Decimal('100.00'),
        current_spend=Decimal('0.00'),
        is_active=True
    )
    session.add(event)
    session.commit()
    return event


@pytest.fixture(scope='function')
def other_event(session, other_manager_id):
    """Event owned by another manager."""
    event = Event(
        manager_id=other_manager_id,
        name='Other Party',
        budget=Decimal('500.00'),
        current_spend=Decimal('0.00'),
        is_active=True
    )
    session.add(event)
    session.commit()
    return event


def _beverage(session, event, name, beverage_type, category, price, stock):
    beverage = Beverage(
        event_id=event.id,
        manager_id=event.manager_id,
        name=name,
        beverage_type=beverage_type,
        category=category,
        price=price,
        initial_stock=stock,
        current_stock=stock
    )
    session.add(beverage)
    session.commit()
    return beverage


@pytest.fixture(scope='function')
def beer(session, event):
    """Beer: price 5.00, stock 10."""
    return _beverage(session, event, 'Lager', 'alcoholic', 'Beers', Decimal('5.00'), 10)


@pytest.fixture(scope='function')
def juice(session, event):
    """Juice: price 3.00, stock 4."""
    return _beverage(session, event, 'Orange Juice', 'non-alcoholic', 'Juice', Decimal('3.00'), 4)


@pytest.fixture(scope='function')
def other_beer(session, other_event):
    """Beer belonging to the other manager's event."""
    return _beverage(session, other_event, 'Stout', 'alcoholic', 'Beers', Decimal('6.00'), 10)


@pytest.fixture(scope='function')
def table(session, event):
    """Open, empty tab."""
    table = BarTable(
        event_id=event.id,
        manager_id=event.manager_id,
        table_number='T1',
        is_open=True,
        total_amount=Decimal('0.00')
    )
    session.add(table)
    session.commit()
    return table


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def auth_headers(manager_id):
    """Headers supplied by the authentication collaborator."""
    return {'X-Manager-Id': manager_id, 'X-Manager-Role': 'MANAGER'}
