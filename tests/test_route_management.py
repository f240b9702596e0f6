# tests/test_route_management.py

import pytest

from pallet_tracker import db
from pallet_tracker.errors import NotFoundError, DomainViolation
from pallet_tracker.models import (PartRouteProgress, PalletStageProgress, TaskStatus, AuditLog, OrderStatus,
                                   RouteStage)
from pallet_tracker.services import pallet_operations_service as pos
from pallet_tracker.services import route_service


def test_route_stages_are_ordered(plant):
    stages = route_service.get_route_stages(plant.route.id)
    assert [s.stage_name for s in stages] == ['Cut', 'Edge', 'Pack']
    assert [s.sequence_number for s in stages] == [1, 2, 3]


def test_route_stages_of_unknown_route(app):
    with pytest.raises(NotFoundError):
        route_service.get_route_stages(9999)


def test_next_stage_skips_gaps_in_sequence(plant):
    plant.rs_pack.sequence_number = 7
    db.session.commit()

    assert route_service.get_next_route_stage(plant.route, plant.rs_edge).id == plant.rs_pack.id
    assert route_service.get_next_route_stage(plant.route, plant.rs_pack) is None
    assert route_service.get_first_route_stage(plant.route).id == plant.rs_cut.id


def test_change_route_resets_progress(plant):
    part = plant.draft_part
    pallet = part.pallets[0]
    pos.assign_pallet_to_machine(pallet.id, plant.saw.id, plant.rs_cut.id, plant.operator.id)
    pos.complete_pallet_processing(pallet.id, plant.saw.id)
    old_route_stage_ids = {rs.id for rs in plant.route.route_stages}

    part, previous_route = route_service.change_part_route(part.id, plant.alt_route.id)

    assert previous_route.id == plant.route.id
    assert part.route_id == plant.alt_route.id
    rows = PartRouteProgress.query.filter_by(part_id=part.id).all()
    assert sorted(r.route_stage_id for r in rows) == sorted(rs.id for rs in plant.alt_route.route_stages)
    assert all(r.status == TaskStatus.NOT_PROCESSED for r in rows)
    assert PalletStageProgress.query.filter(
        PalletStageProgress.pallet_id == pallet.id,
        PalletStageProgress.route_stage_id.in_(old_route_stage_ids)
    ).count() == 0
    assert pallet.current_step_id == plant.alt_route.route_stages[0].id
    assert AuditLog.query.filter_by(part_id=part.id, category='route').count() == 1


def test_change_route_rejected_while_pallet_on_machine(plant):
    pallet = plant.draft_part.pallets[0]
    pos.assign_pallet_to_machine(pallet.id, plant.saw.id, plant.rs_cut.id, plant.operator.id)

    with pytest.raises(DomainViolation):
        route_service.change_part_route(plant.draft_part.id, plant.alt_route.id)

    assert plant.draft_part.route_id == plant.route.id
    assert pallet.current_step_id == plant.rs_cut.id
    assert PalletStageProgress.query.filter_by(pallet_id=pallet.id).count() == 1
    assert AuditLog.query.filter_by(part_id=plant.draft_part.id, category='route').count() == 0

    pos.complete_pallet_processing(pallet.id, plant.saw.id)
    part, _ = route_service.change_part_route(plant.draft_part.id, plant.alt_route.id)
    assert part.route_id == plant.alt_route.id


def test_change_route_rejected_for_launched_order(plant):
    with pytest.raises(DomainViolation):
        route_service.change_part_route(plant.part.id, plant.alt_route.id)
    assert plant.part.route_id == plant.route.id


def test_change_route_to_same_route(plant):
    with pytest.raises(DomainViolation):
        route_service.change_part_route(plant.draft_part.id, plant.route.id)


def test_change_route_unknown_part_or_route(plant):
    with pytest.raises(NotFoundError):
        route_service.change_part_route(9999, plant.alt_route.id)
    with pytest.raises(NotFoundError):
        route_service.change_part_route(plant.draft_part.id, 9999)


def test_change_route_allowed_for_approved_order(plant):
    plant.draft_order.status = OrderStatus.APPROVED
    db.session.commit()

    part, _ = route_service.change_part_route(plant.draft_part.id, plant.alt_route.id)
    assert part.route_id == plant.alt_route.id


def test_orders_for_route_management(plant):
    orders = route_service.get_orders_for_route_management()
    assert [o['orderId'] for o in orders] == [plant.draft_order.id]
    assert orders[0]['totalParts'] == 1


def test_order_parts_for_route_management(plant):
    result = route_service.get_order_parts_for_route_management(plant.draft_order.id)

    assert result['order']['status'] == 'PRELIMINARY'
    assert [p['partCode'] for p in result['parts']] == ['Y']
    assert result['parts'][0]['currentRoute']['routeId'] == plant.route.id
    assert {r['routeName'] for r in result['availableRoutes']} == {'Cut-Edge-Pack', 'Cut-Pack'}

    with pytest.raises(DomainViolation):
        route_service.get_order_parts_for_route_management(plant.order.id)


def test_route_stage_display_name_uses_substage(plant):
    route_stage = db.session.get(RouteStage, plant.rs_edge.id)
    route_stage.substage = plant.edge_manual
    db.session.commit()
    assert 'Edge manual' in route_stage.display_name
