# pallet_tracker/commands.py

import click
from flask.cli import with_appcontext

from pallet_tracker import db
from pallet_tracker.models import (Stage, Route, RouteStage, Machine, Buffer, BufferCell, Order, OrderStatus,
                                   Package, PackagePart, Part, User, UserRole)
from pallet_tracker.services.pallet_operations_service import create_pallets_for_part


DEMO_STAGES = ('Раскрой', 'Кромкование', 'Упаковка')


@click.command('seed-demo')
@with_appcontext
def seed_demo_command():
    """Создает демонстрационный цех: маршрут, станки, буфер, заказ и поддоны."""
    if Stage.query.filter(Stage.name.in_(DEMO_STAGES)).first():
        click.echo('Демонстрационные данные уже загружены.')
        return

    try:
        cut, edge, pack = [Stage(name=name, final_stage=(name == DEMO_STAGES[-1])) for name in DEMO_STAGES]
        db.session.add_all([cut, edge, pack])

        route = Route(name='Раскрой → Кромка → Упаковка')
        route.route_stages = [
            RouteStage(stage=cut, sequence_number=1),
            RouteStage(stage=edge, sequence_number=2),
            RouteStage(stage=pack, sequence_number=3),
        ]
        db.session.add(route)

        db.session.add_all([
            Machine(name='Пила Holzma', stages=[cut]),
            Machine(name='Кромочник Brandt', stages=[edge], no_shift_task=True),
            Machine(name='Стол упаковки', stages=[pack], no_shift_task=True),
        ])

        buffer = Buffer(name='Буфер участка кромки', location='Цех 1')
        buffer.cells = [BufferCell(code=f"A{i}", capacity=2) for i in range(1, 5)]
        db.session.add(buffer)

        db.session.add_all([
            User(username='operator', full_name='Оператор смены', role=UserRole.OPERATOR),
            User(username='master', full_name='Мастер участка', role=UserRole.MASTER),
        ])

        part = Part(code='DET-001', name='Боковина шкафа', material='ЛДСП 16 мм', size='720x560',
                    total_quantity=100, route=route)
        order = Order(batch_number='2024-001', name='Шкафы-купе', status=OrderStatus.LAUNCH_PERMITTED)
        package = Package(code='UP-1', name='Корпус', quantity=1)
        package.package_parts = [PackagePart(part=part, quantity=100)]
        order.packages = [package]
        db.session.add_all([part, order])
        db.session.flush()

        create_pallets_for_part(part, [50, 50])
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    click.echo('Демонстрационный цех создан.')
