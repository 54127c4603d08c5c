import sys
import os
import logging
import argparse
import pandas as pd
from datetime import datetime

# --- GPS Block to find the 'porcitrack' package ---
script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.join(script_dir, '..')
sys.path.insert(0, project_root)

from porcitrack import create_app, db
from porcitrack.errors import PorciTrackError
from porcitrack.lineage import LineageEngine
from porcitrack.models import Pig, BreedingRelationship
from porcitrack.stores import PigRegistry

logger = logging.getLogger('porcitrack.seed')

# --- Mappings ---
# Adjust these to EXACTLY match the headers of your CSV files.
PIG_COLUMN_MAP = {
    'tag_col': 'RFID',
    'manual_col': 'Manual ID',
    'birth_col': 'Date of Birth',
    'sex_col': 'Gender',
    'status_col': 'Status',
    'breed_col': 'Breed',
    'weight_col': 'Current Weight (kg)',
}
BREEDING_COLUMN_MAP = {
    'child_col': 'Child RFID',
    'parent_col': 'Parent RFID',
    'type_col': 'Relationship',
    'date_col': 'Breeding Date',
    'notes_col': 'Notes',
}


def _optional(row, column):
    if column not in row or pd.isna(row[column]):
        return None
    return row[column]


def seed_pigs(csv_path):
    """
    Loads pigs from a CSV file. Rows whose tag is already registered are skipped.
    Returns the number of pigs added.
    """
    try:
        df = pd.read_csv(csv_path, dtype={PIG_COLUMN_MAP['tag_col']: str, PIG_COLUMN_MAP['manual_col']: str})
        logger.info('Found %d rows in %s', len(df), csv_path)
    except FileNotFoundError:
        logger.error('%s not found. Aborting.', csv_path)
        return 0

    registry = PigRegistry(db.session)
    added = 0
    for index, row in df.iterrows():
        tag_id = str(row[PIG_COLUMN_MAP['tag_col']]).strip()
        if registry.find_by_tag(tag_id):
            logger.warning('Pig %s already registered. Skipping row %d.', tag_id, index + 1)
            continue
        try:
            weight = _optional(row, PIG_COLUMN_MAP['weight_col'])
            pig = Pig(
                tag_id=tag_id,
                manual_id=str(row[PIG_COLUMN_MAP['manual_col']]).strip(),
                birth_date=datetime.strptime(str(row[PIG_COLUMN_MAP['birth_col']]), '%Y-%m-%d').date(),
                sex=str(row[PIG_COLUMN_MAP['sex_col']]).strip().lower(),
                status=str(_optional(row, PIG_COLUMN_MAP['status_col']) or 'active').strip().lower(),
                breed=_optional(row, PIG_COLUMN_MAP['breed_col']),
                current_weight=float(weight) if weight is not None else None,
            )
            registry.add(pig)
            db.session.commit()
            added += 1
        except Exception as e:
            db.session.rollback()
            logger.error('Error processing pig row %d: %s. Skipping this row.', index + 1, e)

    logger.info('Pig seeding complete: %d added.', added)
    return added


def seed_breeding(csv_path, engine):
    """
    Loads breeding relationships from a CSV file through the lineage engine,
    so seeded edges pass the same checks as API requests.
    Returns the number of relationships recorded.
    """
    try:
        df = pd.read_csv(csv_path, dtype=str)
        logger.info('Found %d rows in %s', len(df), csv_path)
    except FileNotFoundError:
        logger.error('%s not found. Aborting.', csv_path)
        return 0

    # Tags are looked up once each.
    pig_id_cache = {}

    def _pig_id(tag_id):
        if tag_id not in pig_id_cache:
            pig = engine.registry.find_by_tag(tag_id)
            pig_id_cache[tag_id] = pig.id if pig else None
        return pig_id_cache[tag_id]

    recorded = 0
    for index, row in df.iterrows():
        child_tag = str(row[BREEDING_COLUMN_MAP['child_col']]).strip()
        parent_tag = str(row[BREEDING_COLUMN_MAP['parent_col']]).strip()
        child_id, parent_id = _pig_id(child_tag), _pig_id(parent_tag)
        if child_id is None or parent_id is None:
            logger.warning('Row %d references an unknown tag (%s / %s). Skipping.', index + 1, child_tag, parent_tag)
            continue
        raw_date = _optional(row, BREEDING_COLUMN_MAP['date_col'])
        if raw_date is None:
            logger.warning('Row %d (%s -> %s) has no breeding date. Skipping.', index + 1, child_tag, parent_tag)
            continue
        try:
            engine.record_breeding(
                child_id,
                parent_id,
                str(row[BREEDING_COLUMN_MAP['type_col']]).strip().lower(),
                datetime.strptime(str(raw_date).strip(), '%Y-%m-%d').date(),
                _optional(row, BREEDING_COLUMN_MAP['notes_col']),
            )
            recorded += 1
        except (PorciTrackError, ValueError) as e:
            logger.warning('Rejected breeding row %d (%s -> %s): %s', index + 1, child_tag, parent_tag, e)

    logger.info('Breeding seeding complete: %d recorded.', recorded)
    return recorded


def main(argv=None):
    parser = argparse.ArgumentParser(description='Seed PorciTrack with pigs and breeding records from CSV files.')
    parser.add_argument('pigs_csv', help='CSV file with one pig per row')
    parser.add_argument('--breeding', dest='breeding_csv', help='CSV file with one breeding relationship per row')
    parser.add_argument('--clear', action='store_true', help='Delete every pig and relationship first')
    args = parser.parse_args(argv)

    app = create_app()
    with app.app_context():
        if args.clear:
            logger.info('Clearing existing pigs and breeding relationships...')
            db.session.query(BreedingRelationship).delete()
            db.session.query(Pig).delete()
            db.session.commit()

        seed_pigs(args.pigs_csv)
        if args.breeding_csv:
            engine = LineageEngine(
                db.session,
                max_generations=app.config['LINEAGE_MAX_GENERATIONS'],
                unique_parent_labels=app.config['LINEAGE_UNIQUE_PARENT_LABELS'],
            )
            seed_breeding(args.breeding_csv, engine)


if __name__ == '__main__':
    main()
