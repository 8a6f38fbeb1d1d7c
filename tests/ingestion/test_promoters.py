"""Tests for promoters (mapped entity -> live rows)."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from migration_ingestion.domain.mapped import ContactSource, FamilyInfo, MappedSchool, MappedStudent
from migration_ingestion.domain.types import PRIMARY_KINDS
from migration_ingestion.promoters import (
    BillingPromoter,
    FamilyPromoter,
    SchoolPromoter,
    StudentPromoter,
    default_promoter_registry,
)
from migration_ingestion.synthesis import InvoiceDraft, PaymentDraft, group_families
from migration_kernel.models import Family, Invoice, Payment, Student, StudentFamily
from migration_kernel.models.billing import PaymentMethod, PaymentPurpose


class TestRegistry:
    def test_every_primary_kind_has_a_promoter(self):
        registry = default_promoter_registry()
        assert set(registry) == set(PRIMARY_KINDS)
        for kind, promoter in registry.items():
            assert promoter.entity_type is kind


class TestColumnPromoter:
    def test_create_and_find(self, session, test_actor_id):
        promoter = SchoolPromoter()
        school_id = promoter.create(
            MappedSchool(legacy_id="1", name="Oak", price=Decimal("100")), session, test_actor_id,
        )
        found = promoter.find_existing("1", session)
        assert found.id == school_id
        assert found.created_by_id == test_actor_id
        assert promoter.find_existing("2", session) is None

    def test_update_returns_changed_columns_only(self, session, test_actor_id):
        promoter = SchoolPromoter()
        promoter.create(MappedSchool(legacy_id="1", name="Oak", price=Decimal("100")), session, test_actor_id)
        existing = promoter.find_existing("1", session)

        editor = uuid4()
        changes = promoter.update(
            existing, MappedSchool(legacy_id="1", name="Oak Primary", price=Decimal("100")), session, editor,
        )
        assert [(c.field_name, c.old_value, c.new_value) for c in changes] == [("name", "Oak", "Oak Primary")]
        assert existing.name == "Oak Primary"
        assert existing.updated_by_id == editor

    def test_update_without_changes(self, session, test_actor_id):
        promoter = SchoolPromoter()
        entity = MappedSchool(legacy_id="1", name="Oak")
        promoter.create(entity, session, test_actor_id)
        existing = promoter.find_existing("1", session)
        assert promoter.update(existing, entity, session, test_actor_id) == ()
        assert existing.updated_by_id is None

    def test_student_reference_is_never_overwritten(self, session, test_actor_id):
        promoter = StudentPromoter()
        promoter.create(MappedStudent(legacy_id="S1", reference="S1", first_name="A"), session, test_actor_id)
        existing = promoter.find_existing("S1", session)
        changes = promoter.update(
            existing, MappedStudent(legacy_id="S1", reference="OTHER", first_name="B"), session, test_actor_id,
        )
        assert [c.field_name for c in changes] == ["first_name"]
        assert existing.reference == "S1"


def _student_row(session, actor, ref="S1") -> Student:
    student = Student(legacy_id=ref, reference=ref, created_by_id=actor)
    session.add(student)
    session.flush()
    return student


class TestFamilyPromoter:
    def _group(self, students):
        contacts = (ContactSource("mother", "Jane Smith", "082", "jane@example.com"),)
        return group_families([
            (s.id, MappedStudent(
                legacy_id=s.legacy_id, reference=s.reference,
                family=FamilyInfo("Smith", contacts, "1 Main Road"),
            ))
            for s in students
        ])[0]

    def test_create_and_link(self, session, test_actor_id):
        students = [_student_row(session, test_actor_id, "S1"), _student_row(session, test_actor_id, "S2")]
        group = self._group(students)
        promoter = FamilyPromoter()

        family_id = promoter.create(group, session, test_actor_id)
        assert promoter.link_members(family_id, group, session, test_actor_id) == 2

        family = session.get(Family, family_id)
        assert family.family_name == "Smith"
        assert family.primary_contact_name == "Jane Smith"
        assert family.email == "jane@example.com"
        assert family.address == "1 Main Road"
        links = session.scalars(select(StudentFamily).where(StudentFamily.family_id == family_id)).all()
        assert {l.relationship_type for l in links} == {"parent"}

    def test_linking_is_idempotent(self, session, test_actor_id):
        group = self._group([_student_row(session, test_actor_id)])
        promoter = FamilyPromoter()
        family_id = promoter.create(group, session, test_actor_id)
        promoter.link_members(family_id, group, session, test_actor_id)

        assert promoter.find_existing("Smith", session).id == family_id
        assert promoter.link_members(family_id, group, session, test_actor_id) == 0


class TestBillingPromoter:
    @pytest.fixture
    def student(self, session, test_actor_id):
        return _student_row(session, test_actor_id)

    def _invoice(self, student_id) -> InvoiceDraft:
        return InvoiceDraft(
            legacy_key="INV-S1", student_id=student_id, invoice_date=date(2024, 1, 15),
            due_date=date(2024, 2, 14), amount=Decimal("100"), description="Legacy tuition fees",
            notes="Imported from legacy system",
        )

    def _payment(self, student_id, links_invoice) -> PaymentDraft:
        return PaymentDraft(
            legacy_key="DEP-S1", student_id=student_id, payment_date=date(2024, 1, 15),
            amount=Decimal("50"), method=PaymentMethod.OTHER, purpose=PaymentPurpose.DEPOSIT,
            receipt_number="RCP-LEGACY-20240115-00001", notes="deposit", links_invoice=links_invoice,
        )

    def test_invoice_created_pending(self, session, student, test_actor_id):
        promoter = BillingPromoter()
        invoice_id = promoter.create_invoice(self._invoice(student.id), session, test_actor_id)
        invoice = session.get(Invoice, invoice_id)
        assert invoice.status == "pending"
        assert promoter.find_invoice("INV-S1", session).id == invoice_id

    def test_deposit_links_invoice(self, session, student, test_actor_id):
        promoter = BillingPromoter()
        invoice_id = promoter.create_invoice(self._invoice(student.id), session, test_actor_id)
        payment_id = promoter.create_payment(self._payment(student.id, True), invoice_id, session, test_actor_id)
        payment = session.get(Payment, payment_id)
        assert payment.invoice_id == invoice_id
        assert payment.method == "other"
        assert payment.purpose == "deposit"
        assert promoter.find_payment("DEP-S1", session).id == payment_id

    def test_unlinked_payment_ignores_invoice_id(self, session, student, test_actor_id):
        promoter = BillingPromoter()
        payment_id = promoter.create_payment(self._payment(student.id, False), uuid4(), session, test_actor_id)
        assert session.get(Payment, payment_id).invoice_id is None
