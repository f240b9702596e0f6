# tests/conftest.py

from types import SimpleNamespace

import pytest

from config import TestingConfig
from pallet_tracker import create_app, db
from pallet_tracker.models import (Stage, Substage, Route, RouteStage, Machine, MachineStatus, Buffer, BufferCell,
                                   BufferCellStatus, Order, OrderStatus, Package, PackagePart, Part, User, UserRole)
from pallet_tracker.services.pallet_operations_service import create_pallets_for_part


@pytest.fixture
def app():
    app, _ = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def socketio_client(app):
    from pallet_tracker import socketio
    return socketio.test_client(app)


def make_route(name, stages):
    route = Route(name=name)
    route.route_stages = [RouteStage(stage=stage, sequence_number=i) for i, stage in enumerate(stages, start=1)]
    db.session.add(route)
    return route


def make_part(code, route, total_quantity, pallet_quantities, order):
    part = Part(code=code, name=f"Деталь {code}", material='ЛДСП', size='600x400',
                total_quantity=total_quantity, route=route)
    package = Package(order=order, code=f"UP-{code}", name=f"Упаковка {code}")
    package.package_parts = [PackagePart(part=part, quantity=total_quantity)]
    db.session.add_all([part, package])
    db.session.flush()
    create_pallets_for_part(part, pallet_quantities)
    db.session.commit()
    return part


@pytest.fixture
def plant(app):
    """
    Цех с маршрутом Раскрой → Кромка → Упаковка, станками, буфером и деталью X
    из двух поддонов по 5 шт.
    """
    cut = Stage(name='Cut')
    edge = Stage(name='Edge')
    pack = Stage(name='Pack', final_stage=True)
    db.session.add_all([cut, edge, pack])
    edge_manual = Substage(stage=edge, name='Edge manual')
    db.session.add(edge_manual)

    route = make_route('Cut-Edge-Pack', [cut, edge, pack])
    alt_route = make_route('Cut-Pack', [cut, pack])

    saw = Machine(name='Saw', stages=[cut])
    saw_2 = Machine(name='Saw 2', stages=[cut])
    edger = Machine(name='Edger', stages=[edge], no_shift_task=True)
    packer = Machine(name='Packer', stages=[pack], no_shift_task=True)
    broken_saw = Machine(name='Broken saw', stages=[cut], status=MachineStatus.BROKEN)
    db.session.add_all([saw, saw_2, edger, packer, broken_saw])

    operator = User(username='operator', full_name='Иван Петров', role=UserRole.OPERATOR)
    db.session.add(operator)

    buffer = Buffer(name='Buffer 1', location='Цех 1')
    single_a = BufferCell(code='A1', capacity=1)
    single_b = BufferCell(code='B1', capacity=1)
    double = BufferCell(code='C1', capacity=2)
    maintenance = BufferCell(code='M1', capacity=5, status=BufferCellStatus.MAINTENANCE)
    buffer.cells = [single_a, single_b, double, maintenance]
    db.session.add(buffer)

    order = Order(batch_number='B-1', name='Заказ 1', status=OrderStatus.LAUNCH_PERMITTED)
    draft_order = Order(batch_number='B-2', name='Заказ 2', status=OrderStatus.PRELIMINARY)
    db.session.add_all([order, draft_order])
    db.session.commit()

    part = make_part('X', route, 10, [5, 5], order)
    draft_part = make_part('Y', route, 4, [4], draft_order)

    return SimpleNamespace(
        cut=cut, edge=edge, pack=pack, edge_manual=edge_manual,
        route=route, alt_route=alt_route,
        rs_cut=route.route_stages[0], rs_edge=route.route_stages[1], rs_pack=route.route_stages[2],
        saw=saw, saw_2=saw_2, edger=edger, packer=packer, broken_saw=broken_saw,
        operator=operator,
        buffer=buffer, cell_a=single_a, cell_b=single_b, cell_double=double, cell_maintenance=maintenance,
        order=order, draft_order=draft_order,
        part=part, pallet_1=part.pallets[0], pallet_2=part.pallets[1],
        draft_part=draft_part,
    )
