import logging
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import db
from .errors import (DuplicatePig, InvalidTransition, PigNotFound,
                     PorciTrackError, StoreFailure, ValidationFailed)
from .lineage import LineageEngine
from .models import Pig, PigStatus, SaleRecord, WeightRecord
from .schemas import (BreedingRequest, PigCreateRequest, PigPatch,
                      SaleRequest, WeightRequest)
from .stores import PigRegistry
from .utils import (calculate_weight_history_with_gain, parse_positive_int,
                    summarize_weights)

logger = logging.getLogger(__name__)

# Create a Blueprint. 'api' is the name of the blueprint.
api = Blueprint('api', __name__)


def _engine():
    """A lineage engine bound to this request's session."""
    return LineageEngine(
        db.session,
        max_generations=current_app.config['LINEAGE_MAX_GENERATIONS'],
        unique_parent_labels=current_app.config['LINEAGE_UNIQUE_PARENT_LABELS'],
    )


def _registry():
    return PigRegistry(db.session)


def _pig_by_tag(tag_id):
    pig = _registry().find_by_tag(tag_id)
    if pig is None:
        raise PigNotFound(tag_id)
    return pig


@api.errorhandler(PorciTrackError)
def handle_porcitrack_error(error):
    """Every typed failure becomes a JSON body with its own status code."""
    db.session.rollback()
    if error.status_code >= 500:
        logger.error('%s: %s', error.kind, error.message)
    else:
        logger.info('Rejected request to %s: %s', request.path, error.message)
    return jsonify(error.to_dict()), error.status_code


@api.errorhandler(SQLAlchemyError)
def handle_store_error(error):
    db.session.rollback()
    logger.exception('Unhandled store failure on %s', request.path)
    return jsonify(StoreFailure('An unexpected storage error occurred.').to_dict()), 500


# --- General Routes ---

@api.route('/health')
def health():
    """A simple test route to confirm the API is running."""
    return jsonify({'status': 'OK', 'timestamp': datetime.now(timezone.utc).isoformat()})


# --- Pig Registry ---

@api.route('/pig/add', methods=['POST'])
def add_pig():
    """
    Registers a new pig. Expects JSON with 'tag_id', 'manual_id',
    'birth_date' and 'sex', plus optional 'status', 'breed', 'notes'
    and 'current_weight'.
    """
    payload = PigCreateRequest.from_json(request.get_json(silent=True))
    registry = _registry()

    # Check both external identifiers before inserting so the error can name the clash.
    if registry.find_by_tag(payload.tag_id):
        raise DuplicatePig(f"Tag ID '{payload.tag_id}' is already in use.")
    if registry.find_by_manual_id(payload.manual_id):
        raise DuplicatePig(f"Manual ID '{payload.manual_id}' is already in use.")

    new_pig = Pig(
        tag_id=payload.tag_id,
        manual_id=payload.manual_id,
        birth_date=payload.birth_date,
        sex=payload.sex.value,
        status=payload.status.value,
        breed=payload.breed,
        notes=payload.notes,
        current_weight=payload.current_weight,
    )
    try:
        registry.add(new_pig)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicatePig('This pig (tag ID or manual ID) already exists.')

    logger.info('Registered pig %s', new_pig.tag_id)
    return jsonify({'message': 'Pig registered successfully!', 'pig': new_pig.to_dict()}), 201


@api.route('/pigs', methods=['GET'])
def get_pigs():
    """
    Lists pigs, newest first. Accepts optional 'status', 'breed' and
    'search' (tag or manual id substring) filters plus 'page' and 'limit'.
    """
    status = request.args.get('status')
    if status and status not in {s.value for s in PigStatus}:
        raise ValidationFailed(f"Unknown status '{status}'.", field='status')

    page = parse_positive_int(request.args.get('page'), 'page', 1)
    limit = parse_positive_int(
        request.args.get('limit'), 'limit',
        current_app.config['PIGS_PAGE_LIMIT'], maximum=current_app.config['PIGS_MAX_PAGE_LIMIT']
    )

    pigs, total = _registry().list_pigs(
        status=status,
        breed=request.args.get('breed'),
        search=request.args.get('search'),
        page=page,
        limit=limit,
    )
    return jsonify({
        'items': [pig.to_dict() for pig in pigs],
        'pagination': {'page': page, 'limit': limit, 'total': total},
    })


@api.route('/pig/<tag_id>', methods=['GET'])
def get_pig(tag_id):
    return jsonify(_pig_by_tag(tag_id).to_dict())


@api.route('/pig/<tag_id>/update', methods=['POST'])
def update_pig(tag_id):
    """
    Applies a partial update. Only 'current_weight', 'status' and 'notes'
    may change; a key sent as null clears the field, a missing key leaves it.
    """
    pig = _pig_by_tag(tag_id)
    patch = PigPatch.from_json(request.get_json(silent=True))
    if patch.is_empty:
        raise ValidationFailed('Nothing to update.')

    changed = patch.apply_to(pig)
    db.session.commit()

    logger.info('Updated pig %s: %s', pig.tag_id, ', '.join(changed))
    return jsonify({'message': 'Pig updated successfully!', 'pig': pig.to_dict()})


@api.route('/pig/<tag_id>/delete', methods=['DELETE'])
def delete_pig(tag_id):
    """Deletes a pig together with its breeding relationships, weights and sales."""
    pig = _pig_by_tag(tag_id)
    _registry().delete(pig)
    db.session.commit()

    logger.info('Deleted pig %s', tag_id)
    return jsonify({'message': f"Pig '{tag_id}' and all its records have been deleted."})


@api.route('/pig/<tag_id>/genealogy', methods=['GET'])
def get_genealogy(tag_id):
    """The pig, its ancestors (up to great-grandparents) and its direct offspring."""
    return jsonify(_engine().get_genealogy(tag_id).to_dict())


# --- Weights ---

@api.route('/pig/<tag_id>/weight/add', methods=['POST'])
def add_weight(tag_id):
    """
    Records a weighing and makes it the pig's current weight.
    Expects JSON with 'weight_kg' and 'recorded_date'.
    """
    pig = _pig_by_tag(tag_id)
    payload = WeightRequest.from_json(request.get_json(silent=True))

    if not pig.is_active:
        raise InvalidTransition(f'Cannot record weight for {pig.status} pigs.')

    new_weight = WeightRecord(
        pig_id=pig.id,
        weight_kg=payload.weight_kg,
        recorded_date=payload.recorded_date,
        recorded_by=payload.recorded_by,
        notes=payload.notes,
    )
    db.session.add(new_weight)
    pig.current_weight = payload.weight_kg
    db.session.commit()

    return jsonify({'message': 'Weight recorded successfully!', 'weight': new_weight.to_dict()}), 201


@api.route('/pig/<tag_id>/weights', methods=['GET'])
def get_weight_history(tag_id):
    pig = _pig_by_tag(tag_id)
    records = _registry().weights_for(pig.id)
    return jsonify({
        'pig': pig.to_dict(),
        'records': calculate_weight_history_with_gain(records),
        **summarize_weights(records),
    })


# --- Sales ---

@api.route('/pig/<tag_id>/sale/add', methods=['POST'])
def add_sale(tag_id):
    """
    Records the sale of an active pig and marks it as sold.
    Expects JSON with 'sale_date' and 'sale_price'.
    """
    pig = _pig_by_tag(tag_id)
    payload = SaleRequest.from_json(request.get_json(silent=True))

    if payload.sale_date < pig.birth_date:
        raise ValidationFailed('Sale date cannot be before pig birth date.', field='sale_date')
    if not pig.is_active:
        raise InvalidTransition('Can only sell active pigs.')

    new_sale = SaleRecord(
        pig_id=pig.id,
        sale_date=payload.sale_date,
        sale_price=payload.sale_price,
        buyer_name=payload.buyer_name,
        quantity=payload.quantity,
        sale_notes=payload.sale_notes,
    )
    db.session.add(new_sale)
    pig.transition_to(PigStatus.SOLD, on_date=payload.sale_date)
    db.session.commit()

    logger.info('Sold pig %s on %s', pig.tag_id, payload.sale_date.isoformat())
    return jsonify({'message': 'Sale recorded successfully!', 'sale': new_sale.to_dict()}), 201


@api.route('/sales', methods=['GET'])
def get_sales():
    return jsonify([sale.to_dict() for sale in _registry().sales()])


# --- Reports ---

@api.route('/reports/genealogy', methods=['GET'])
def get_genealogy_report():
    """Every pig with how many offspring it has on record, youngest pig first."""
    report = []
    for pig, offspring_count in _registry().offspring_counts():
        pig_data = pig.to_dict()
        pig_data['offspring_count'] = offspring_count
        report.append(pig_data)
    return jsonify(report)


# --- Breeding ---

@api.route('/breeding/add', methods=['POST'])
def add_breeding():
    """
    Records that 'child_pig_id' has 'parent_pig_id' as its mother or father.
    Expects JSON with 'child_pig_id', 'parent_pig_id', 'relationship_type'
    ('mother' or 'father') and 'breeding_date', plus optional 'notes'.
    """
    payload = BreedingRequest.from_json(request.get_json(silent=True))
    relationship = _engine().record_breeding(
        payload.child_pig_id,
        payload.parent_pig_id,
        payload.relationship_type,
        payload.breeding_date,
        payload.notes,
    )
    return jsonify({'message': 'Breeding recorded successfully!', 'relationship': relationship.to_dict()}), 201


@api.route('/breeding/<pig_id>', methods=['GET'])
def get_breeding_history(pig_id):
    """Breeding relationships where the pig is a parent and where it is a child."""
    return jsonify(_engine().get_breeding_history(pig_id).to_dict())


@api.route('/breeding/<pig_id>/offspring', methods=['GET'])
def get_offspring(pig_id):
    return jsonify([entry.to_dict() for entry in _engine().get_descendants(pig_id)])


@api.route('/breeding/<pig_id>/ancestors', methods=['GET'])
def get_ancestors(pig_id):
    """
    Ancestors up to 'generations' deep (default and maximum: the configured
    cap, 3 unless changed), ordered by generation then relationship type.
    """
    engine = _engine()
    generations = parse_positive_int(
        request.args.get('generations'), 'generations',
        engine.max_generations, maximum=engine.max_generations
    )
    return jsonify([entry.to_dict() for entry in engine.get_ancestors(pig_id, generations)])
