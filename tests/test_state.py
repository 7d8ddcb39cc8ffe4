"""Unit tests for the immutable form state."""

from formengine.state import FormMeta, FormState
from formengine.types import FormMode


def make_state():
    return FormState(
        values={"name": "Ada", "qty": 2},
        derived={"total": 20},
        meta=FormMeta(mode=FormMode.EDIT, is_new=False, document_id="doc-1"),
    )


class TestFormState:
    """Test FormState helpers."""

    def test_get_value_falls_back_to_derived(self):
        """Should read values first, then derived values."""
        state = make_state()
        assert state.get_value("name") == "Ada"
        assert state.get_value("total") == 20
        assert state.get_value("missing", "n/a") == "n/a"

    def test_bindings_merge_derived(self):
        """Should merge derived values over values."""
        assert make_state().bindings() == {"name": "Ada", "qty": 2, "total": 20}

    def test_with_submitting(self):
        """Should toggle the submitting flag on a copy."""
        state = make_state()
        busy = state.with_submitting(True)
        assert busy.meta.is_submitting is True
        assert state.meta.is_submitting is False

    def test_mark_submitted(self):
        """Should count the attempt and touch every value."""
        state = make_state().mark_submitted()
        assert state.meta.submit_count == 1
        assert state.touched == {"name": True, "qty": True}

    def test_to_dict(self):
        """Should serialize with camelCase meta keys and without the snapshot."""
        data = make_state().to_dict()
        assert data["meta"] == {
            "mode": "edit",
            "isNew": False,
            "isSubmitting": False,
            "isDirty": False,
            "submitCount": 0,
            "documentId": "doc-1",
        }
        assert "initialValues" not in data
        assert data["derived"] == {"total": 20}
