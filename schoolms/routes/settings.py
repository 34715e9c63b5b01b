from flask import Blueprint, request, jsonify, current_app

from schoolms.decorators import admin_required, require_login
from schoolms.extensions import db
from schoolms.models import FeeStructure
from schoolms.utils.fees import DAY, BOARDING, filter_fee_items_by_residence

settings_bp = Blueprint('settings', __name__, url_prefix='/api/settings')


@settings_bp.before_request
def before_request_settings():
    return require_login()


def serialize_fee_structure(fee):
    return {
        'id': fee.id,
        'className': fee.class_name,
        'feeName': fee.fee_name,
        'amount': fee.amount or 0,
        'frequency': fee.frequency,
        'term': fee.term,
        'year': fee.year,
        'description': fee.description,
        'isActive': fee.is_active,
    }


@settings_bp.route('/fee-structures', methods=['GET'])
def get_fee_structures():
    """All active fee items grouped by class, with per-class totals."""
    try:
        fees = FeeStructure.query.filter_by(is_active=True).order_by(
            FeeStructure.class_name, FeeStructure.fee_name).all()

        grouped = {}
        for fee in fees:
            grouped.setdefault(fee.class_name, []).append(serialize_fee_structure(fee))
        class_totals = {
            class_name: sum(item['amount'] for item in items)
            for class_name, items in grouped.items()
        }

        return jsonify({
            'feeStructures': grouped,
            'classTotals': class_totals,
            'totalClasses': len(grouped),
        })
    except Exception as e:
        current_app.logger.error(f"Error fetching fee structures: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to fetch fee structures'}), 500


@settings_bp.route('/fee-structures/<string:class_name>', methods=['GET'])
def get_class_fee_structure(class_name):
    try:
        query = FeeStructure.query.filter_by(class_name=class_name, is_active=True)
        term = request.args.get('term')
        year = request.args.get('year')
        if term and year:
            query = query.filter_by(term=term, year=year)

        items = [serialize_fee_structure(fee) for fee in query.order_by(FeeStructure.fee_name).all()]
        _, day_total = filter_fee_items_by_residence(items, DAY)
        _, boarding_total = filter_fee_items_by_residence(items, BOARDING)

        return jsonify({
            'className': class_name,
            'feeStructures': items,
            'totalFees': boarding_total,
            'dayTotal': day_total,
            'boardingTotal': boarding_total,
            'feeCount': len(items),
        })
    except Exception as e:
        current_app.logger.error(f"Error fetching fee structure for {class_name}: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to fetch fee structure'}), 500


def _parse_amount(value):
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    return amount if amount >= 0 else None


@settings_bp.route('/fee-structures', methods=['POST'])
@admin_required
def create_fee_structure():
    try:
        data = request.get_json(silent=True) or {}
        class_name = (data.get('className') or '').strip()
        fee_name = (data.get('feeName') or '').strip()
        amount = _parse_amount(data.get('amount'))

        if not class_name or not fee_name:
            return jsonify({'success': False, 'message': 'Class name and fee name are required'}), 400
        if amount is None:
            return jsonify({'success': False, 'message': 'Amount must be a non-negative number'}), 400

        fee = FeeStructure(
            class_name=class_name,
            fee_name=fee_name,
            amount=amount,
            frequency=data.get('frequency') or '',
            term=data.get('term'),
            year=data.get('year'),
            description=data.get('description') or '',
            is_active=bool(data.get('isActive', True)),
        )
        db.session.add(fee)
        db.session.commit()

        current_app.logger.info(f"Added fee item {fee_name} ({amount}) to {class_name}")
        return jsonify({'success': True, 'feeStructure': serialize_fee_structure(fee)}), 201
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating fee structure: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to create fee structure'}), 500


@settings_bp.route('/fee-structures/<int:fee_id>', methods=['PUT'])
@admin_required
def update_fee_structure(fee_id):
    try:
        fee = db.session.get(FeeStructure, fee_id)
        if fee is None:
            return jsonify({'success': False, 'message': 'Fee structure not found'}), 404

        data = request.get_json(silent=True) or {}
        if 'amount' in data:
            amount = _parse_amount(data.get('amount'))
            if amount is None:
                return jsonify({'success': False, 'message': 'Amount must be a non-negative number'}), 400
            fee.amount = amount
        if data.get('className'):
            fee.class_name = data['className'].strip()
        if data.get('feeName'):
            fee.fee_name = data['feeName'].strip()
        for key, attribute in (('frequency', 'frequency'), ('term', 'term'),
                               ('year', 'year'), ('description', 'description')):
            if key in data:
                setattr(fee, attribute, data[key])
        if 'isActive' in data:
            fee.is_active = bool(data['isActive'])

        db.session.commit()
        return jsonify({'success': True, 'feeStructure': serialize_fee_structure(fee)})
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating fee structure: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to update fee structure'}), 500


@settings_bp.route('/fee-structures/<int:fee_id>', methods=['DELETE'])
@admin_required
def delete_fee_structure(fee_id):
    try:
        fee = db.session.get(FeeStructure, fee_id)
        if fee is None:
            return jsonify({'success': False, 'message': 'Fee structure not found'}), 404
        db.session.delete(fee)
        db.session.commit()
        return jsonify({'success': True, 'message': 'Fee structure deleted successfully'})
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting fee structure: {str(e)}", exc_info=True)
        return jsonify({'success': False, 'message': 'Failed to delete fee structure'}), 500
