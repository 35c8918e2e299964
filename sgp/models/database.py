"""
SGP - Modelos do Banco de Dados
Equipamentos, anexos, compras, termos de responsabilidade e histórico
"""
import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

from .transform import MapaCampos

db = SQLAlchemy()


def _agora():
    return datetime.now(timezone.utc)


def _novo_id():
    return str(uuid.uuid4())


# Valores aceitos
STATUS_EQUIPAMENTO = ('active', 'maintenance', 'deactivated')
URGENCIAS_COMPRA = ('low', 'medium', 'high', 'critical')
STATUS_COMPRA = ('pending', 'approved', 'rejected', 'acquired')
STATUS_TERMO = ('draft', 'sent', 'signed', 'cancelled')
TIPOS_ENTIDADE = ('equipment', 'purchase', 'responsibility_term')


# ============================================================
# EQUIPAMENTOS
# ============================================================

class Equipamento(db.Model):
    __tablename__ = 'equipments'

    id = db.Column(db.String(36), primary_key=True, default=_novo_id)
    asset_number = db.Column(db.String(20), unique=True, nullable=False, index=True)
    description = db.Column(db.String(500), nullable=False)
    brand = db.Column(db.String(200), nullable=False)
    model = db.Column(db.String(200), nullable=False)
    specs = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='active')
    # active, maintenance, deactivated
    location = db.Column(db.String(300), nullable=False)
    responsible = db.Column(db.String(200), nullable=False)
    acquisition_date = db.Column(db.Date, nullable=False)
    invoice_date = db.Column(db.Date)
    value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    maintenance_description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=_agora)
    updated_at = db.Column(db.DateTime, default=_agora)

    anexos = db.relationship('Anexo', backref='equipamento', lazy='dynamic',
                             cascade='all, delete-orphan',
                             order_by='Anexo.uploaded_at')
    termos = db.relationship('TermoResponsabilidade', backref='equipamento', lazy='dynamic',
                             cascade='all, delete-orphan')

    MAPA = MapaCampos([
        'id', 'asset_number', 'description', 'brand', 'model', 'specs', 'status',
        'location', 'responsible', 'acquisition_date', 'invoice_date', 'value',
        'maintenance_description', 'created_at', 'updated_at',
    ])

    def to_dict(self, anexos=None):
        data = self.MAPA.para_api(self)
        if anexos is not None:
            data['attachments'] = anexos
        return data


class Anexo(db.Model):
    """Arquivo associado a um equipamento (nota fiscal, foto, termo em PDF)"""
    __tablename__ = 'attachments'

    id = db.Column(db.String(36), primary_key=True, default=_novo_id)
    equipment_id = db.Column(db.String(36), db.ForeignKey('equipments.id', ondelete='CASCADE'),
                             nullable=False, index=True)
    name = db.Column(db.String(300), nullable=False)
    size = db.Column(db.BigInteger, nullable=False, default=0)
    type = db.Column(db.String(100))
    file_path = db.Column(db.Text, nullable=False)
    uploaded_by = db.Column(db.String(200))
    uploaded_at = db.Column(db.DateTime, default=_agora)
    created_at = db.Column(db.DateTime, default=_agora)

    MAPA = MapaCampos([
        'id', 'equipment_id', 'name', 'size', 'type', 'file_path',
        'uploaded_by', 'uploaded_at', 'created_at',
    ])

    def to_dict(self, url=None):
        return self.MAPA.para_api(self, url=url)


# ============================================================
# COMPRAS
# ============================================================

class Compra(db.Model):
    """Solicitação de compra de equipamento"""
    __tablename__ = 'equipment_purchases'

    id = db.Column(db.String(36), primary_key=True, default=_novo_id)
    description = db.Column(db.String(500), nullable=False)
    brand = db.Column(db.String(200))
    model = db.Column(db.String(200))
    specifications = db.Column(db.Text)
    location = db.Column(db.String(300))
    urgency = db.Column(db.String(20), nullable=False, default='medium')
    # low, medium, high, critical
    status = db.Column(db.String(20), nullable=False, default='pending')
    # pending, approved, rejected, acquired
    requested_by = db.Column(db.String(200), nullable=False)
    request_date = db.Column(db.Date, nullable=False)
    expected_date = db.Column(db.Date)
    supplier = db.Column(db.String(300))
    observations = db.Column(db.Text)
    approved_by = db.Column(db.String(200))
    approval_date = db.Column(db.DateTime)
    rejection_reason = db.Column(db.Text)
    equipment_id = db.Column(db.String(36), db.ForeignKey('equipments.id', ondelete='SET NULL'))
    created_at = db.Column(db.DateTime, default=_agora)
    updated_at = db.Column(db.DateTime, default=_agora)

    MAPA = MapaCampos([
        'id', 'description', 'brand', 'model', 'specifications', 'location',
        'urgency', 'status', 'requested_by', 'request_date', 'expected_date',
        'supplier', 'observations', 'approved_by', 'approval_date',
        'rejection_reason', 'equipment_id', 'created_at', 'updated_at',
    ])

    def to_dict(self):
        return self.MAPA.para_api(self)


# ============================================================
# TERMOS DE RESPONSABILIDADE
# ============================================================

class TermoResponsabilidade(db.Model):
    __tablename__ = 'responsibility_terms'

    id = db.Column(db.String(36), primary_key=True, default=_novo_id)
    equipment_id = db.Column(db.String(36), db.ForeignKey('equipments.id', ondelete='CASCADE'),
                             nullable=False, index=True)
    responsible_person = db.Column(db.String(200), nullable=False)
    responsible_email = db.Column(db.String(200))
    responsible_phone = db.Column(db.String(50))
    responsible_department = db.Column(db.String(200))
    term_date = db.Column(db.Date, nullable=False)
    observations = db.Column(db.Text)
    pdf_url = db.Column(db.Text)
    pdf_path = db.Column(db.Text)  # caminho no storage, não exposto na API
    manual_signature = db.Column(db.Text)  # imagem da assinatura em base64
    status = db.Column(db.String(20), nullable=False, default='signed')
    # draft, sent, signed, cancelled
    created_at = db.Column(db.DateTime, default=_agora)
    updated_at = db.Column(db.DateTime, default=_agora)

    MAPA = MapaCampos([
        'id', 'equipment_id', 'responsible_person', 'responsible_email',
        'responsible_phone', 'responsible_department', 'term_date', 'observations',
        'pdf_url', 'status', 'manual_signature', 'created_at', 'updated_at',
    ])

    def to_dict(self):
        return self.MAPA.para_api(self)


# ============================================================
# HISTÓRICO
# ============================================================

class HistoricoEntrada(db.Model):
    """Registro imutável de auditoria"""
    __tablename__ = 'history_entries'

    id = db.Column(db.Integer, primary_key=True)
    equipment_id = db.Column(db.String(36), index=True)  # null: compra ou equipamento excluído
    entity_type = db.Column(db.String(30), nullable=False, index=True)
    entity_id = db.Column(db.String(36))
    user_name = db.Column(db.String(200), nullable=False)
    change_type = db.Column(db.String(50), nullable=False)
    # created, edited, deleted, maintenance, status-changed, file-attached, file-removed, transferred
    field = db.Column(db.String(100))
    old_value = db.Column(db.Text)
    new_value = db.Column(db.Text)
    timestamp = db.Column(db.DateTime, default=_agora, index=True)
    created_at = db.Column(db.DateTime, default=_agora)

    MAPA = MapaCampos([
        'id', 'equipment_id', 'entity_type', 'entity_id', 'user_name',
        'change_type', 'field', 'old_value', 'new_value', 'timestamp', 'created_at',
    ])

    def to_dict(self):
        return self.MAPA.para_api(self)
