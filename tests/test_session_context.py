"""Tests for the session context store."""

from plugin_commands import CommandKind, PluginCommand, PluginResponse
from session_context import SessionContextStore


def wireframe_response(wireframe_id="w1", page_ids=("p1", "p2"), **extra):
    data = {
        "wireframeId": wireframe_id,
        "pageIds": list(page_ids),
        "activePageId": page_ids[0],
        "activeWireframeId": wireframe_id,
        **extra,
    }
    return PluginResponse(type="CREATE_WIREFRAME", success=True, data=data, id="c1", is_response=True)


class TestApplyResponse:
    def test_create_wireframe_records_wireframe(self):
        store = SessionContextStore()
        store.apply_response(wireframe_response())

        ctx = store.get()
        assert ctx.active_page_id == "p1"
        assert ctx.active_wireframe_id == "w1"
        assert len(ctx.wireframes) == 1
        assert ctx.wireframes[0].name == "Wireframe 1"
        assert ctx.wireframes[0].page_ids == ["p1", "p2"]

    def test_replaying_a_response_is_idempotent(self):
        store = SessionContextStore()
        response = wireframe_response()
        store.apply_response(response)
        first = store.get().to_dict()

        store.apply_response(response)

        assert store.get().to_dict() == first

    def test_known_wireframe_gets_its_pages_replaced(self):
        store = SessionContextStore()
        store.apply_response(wireframe_response(page_ids=("p1",)))
        store.apply_response(wireframe_response(page_ids=("p1", "p3", "p3")))

        ctx = store.get()
        assert len(ctx.wireframes) == 1
        assert ctx.wireframes[0].page_ids == ["p1", "p3"]

    def test_second_wireframe_is_appended(self):
        store = SessionContextStore()
        store.apply_response(wireframe_response("w1", ("p1",)))
        store.apply_response(wireframe_response("w2", ("p9",)))

        ctx = store.get()
        assert [w.id for w in ctx.wireframes] == ["w1", "w2"]
        assert ctx.wireframes[1].name == "Wireframe 2"
        assert ctx.active_page_id == "p9"

    def test_wireframes_list_replaces_known_set(self):
        store = SessionContextStore()
        store.apply_response(wireframe_response("w1", ("p1",)))
        store.apply_response(PluginResponse(
            type="GET_CURRENT_PAGE",
            success=True,
            data={"wireframes": [{"id": "w7", "name": "Checkout", "pageIds": ["p7"], "createdAt": 5}]},
        ))

        ctx = store.get()
        assert [w.id for w in ctx.wireframes] == ["w7"]
        assert ctx.wireframes[0].name == "Checkout"
        assert ctx.wireframes[0].created_at_ms == 5

    def test_failed_response_still_updates_active_page(self):
        store = SessionContextStore()
        store.apply_response(PluginResponse(
            type="ADD_ELEMENT", success=False, error="boom", data={"activePageId": "p4"},
        ))

        assert store.get().active_page_id == "p4"

    def test_non_mapping_data_is_ignored(self):
        store = SessionContextStore()
        store.apply_response(PluginResponse(type="EXPORT_DESIGN", success=True, data=["a", "b"]))
        store.apply_response(PluginResponse(type="EXPORT_DESIGN", success=True, data=None))

        assert store.get().to_dict() == {"activeWireframeId": None, "activePageId": None, "wireframes": []}


class TestSnapshots:
    def test_get_returns_a_copy(self):
        store = SessionContextStore()
        store.apply_response(wireframe_response())

        snapshot = store.get()
        snapshot.active_page_id = "tampered"
        snapshot.wireframes[0].page_ids.append("tampered")

        ctx = store.get()
        assert ctx.active_page_id == "p1"
        assert ctx.wireframes[0].page_ids == ["p1", "p2"]

    def test_reset(self):
        store = SessionContextStore()
        store.apply_response(wireframe_response())
        store.reset()

        assert store.get().active_page_id is None
        assert store.get().wireframes == []


class TestInjection:
    def make_store(self):
        store = SessionContextStore()
        store.apply_response(wireframe_response())
        return store

    def test_add_element_without_parent_gets_active_page(self):
        store = self.make_store()
        command = PluginCommand.create(CommandKind.ADD_ELEMENT, {"elementType": "BUTTON"}, "c2")

        injected = store.inject_into(command)

        assert injected.payload["parent"] == "p1"
        assert "parent" not in command.payload

    def test_explicit_parent_is_kept(self):
        store = self.make_store()
        command = PluginCommand.create(CommandKind.ADD_ELEMENT, {"elementType": "BUTTON", "parent": "x"}, "c2")

        assert store.inject_into(command).payload["parent"] == "x"

    def test_style_without_element_gets_page_scope(self):
        store = self.make_store()
        command = PluginCommand.create(CommandKind.STYLE_ELEMENT, {"styles": {"fill": "#000"}}, "c3")

        injected = store.inject_into(command)

        assert injected.payload["pageId"] == "p1"
        assert "elementId" not in injected.payload

    def test_queries_are_untouched(self):
        store = self.make_store()
        for kind in (CommandKind.GET_SELECTION, CommandKind.GET_CURRENT_PAGE):
            command = PluginCommand.create(kind, {}, "q")
            assert store.inject_into(command) is command

    def test_no_active_page_means_no_injection(self):
        store = SessionContextStore()
        command = PluginCommand.create(CommandKind.ADD_ELEMENT, {"elementType": "BUTTON"}, "c2")

        assert store.inject_into(command).payload == {"elementType": "BUTTON"}
