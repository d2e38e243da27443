"""Seed database with demo data."""
from sitebatch.database import SessionLocal
from sitebatch.models import (
    Asset, Inspection, InspectionItemTemplate, InspectionType,
    ReportRecipient, TemplateAsset, UserProfile,
)
from datetime import date, timedelta
import uuid


def seed():
    """Seed database with demo data."""
    db = SessionLocal()

    try:
        # Profiles mirror auth provider subjects; ids must match the demo tokens.
        admin = UserProfile(
            id=uuid.UUID('00000000-0000-0000-0000-000000000101'),
            email='admin@example.com',
            role='admin',
        )
        fitter = UserProfile(
            id=uuid.UUID('00000000-0000-0000-0000-000000000102'),
            email='fitter@example.com',
            role='user',
        )
        db.add_all([admin, fitter])
        db.flush()

        types_data = [
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000201'),
                'name': 'LOLER Thorough Examination',
                'frequency': '6 months',
                'statutory_requirement': True,
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000202'),
                'name': 'Service',
                'frequency': '12 months',
                'statutory_requirement': False,
            },
        ]
        types = []
        for type_data in types_data:
            inspection_type = InspectionType(**type_data)
            db.add(inspection_type)
            types.append(inspection_type)

        assets_data = [
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000301'),
                'asset_id': 'CR-004',
                'name': 'Crawler crane 40t',
                'location': 'Yard A',
                'asset_type': 'Crane',
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000302'),
                'asset_id': 'CR-007',
                'name': 'Crawler crane 60t',
                'location': 'Yard B',
                'asset_type': 'Crane',
            },
            {
                'id': uuid.UUID('00000000-0000-0000-0000-000000000303'),
                'asset_id': 'TH-012',
                'name': 'Telehandler',
                'location': 'Site 3',
                'asset_type': 'Telehandler',
            },
        ]
        assets = []
        for index, asset_data in enumerate(assets_data, start=1):
            asset = Asset(sort_order=index, **asset_data)
            db.add(asset)
            assets.append(asset)

        db.flush()

        today = date.today()
        linked_group = uuid.uuid4()
        inspections_data = [
            # Two cranes examined together.
            {'asset': assets[0], 'type': types[0], 'due_date': today + timedelta(days=5), 'linked_group_id': linked_group},
            {'asset': assets[1], 'type': types[0], 'due_date': today + timedelta(days=5), 'linked_group_id': linked_group},
            {'asset': assets[2], 'type': types[1], 'due_date': today - timedelta(days=3), 'status': 'overdue'},
            {'asset': assets[2], 'type': types[0], 'due_date': today + timedelta(days=40), 'status': 'on_hold',
             'hold_reason': 'Waiting for access to site'},
        ]
        for data in inspections_data:
            db.add(Inspection(
                asset_id=data['asset'].id,
                inspection_type_id=data['type'].id,
                due_date=data['due_date'],
                status=data.get('status', 'pending'),
                hold_reason=data.get('hold_reason'),
                linked_group_id=data.get('linked_group_id'),
            ))

        templates_data = [
            {'unique_id': 'SL-001', 'description': 'Lifting sling 2t', 'capacity': '2t',
             'expiry_date': today + timedelta(days=20), 'asset': assets[0]},
            {'unique_id': 'SH-014', 'description': 'Bow shackle', 'capacity': '4.75t',
             'expiry_date': today - timedelta(days=2), 'asset': None},
            {'unique_id': None, 'description': 'Hook safety latch', 'capacity_na': True,
             'expiry_na': True, 'asset': None, 'inspection_type': types[0]},
        ]
        for index, data in enumerate(templates_data):
            template = InspectionItemTemplate(
                unique_id=data['unique_id'],
                description=data['description'],
                capacity=data.get('capacity'),
                capacity_na=data.get('capacity_na', False),
                expiry_date=data.get('expiry_date'),
                expiry_na=data.get('expiry_na', False),
                inspection_type_id=data['inspection_type'].id if data.get('inspection_type') else None,
                sort_order=index,
            )
            if data['asset'] is not None:
                template.asset_links.append(TemplateAsset(asset_id=data['asset'].id))
            db.add(template)

        db.add(ReportRecipient(email='compliance@example.com'))

        db.commit()
        print("Database seeded successfully!")
        print("\nDemo profiles:")
        print("  admin@example.com (admin)")
        print("  fitter@example.com (user)")

    except Exception as e:
        db.rollback()
        print(f"Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
