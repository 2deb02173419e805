"""End-to-end tests reconciling real state.vscdb files."""

import sqlite3
from unittest.mock import patch

import pytest

from cursor_history.reconciler import fetch as fetch_module
from cursor_history.reconciler.fetch import fetch_many, fetch_workspace_conversations
from cursor_history.reconciler.store import GLOBAL_TABLE, KeyValueStore

JAN_2024_MS = 1704067200000
FEB_2024_MS = 1706745600000


@pytest.mark.asyncio
async def test_chat_tab_only_workspace(storage) -> None:
    """One legacy tab and no composer metadata gives one conversation."""
    storage.add_workspace(
        "ws1",
        chat_data={
            "tabs": [
                {
                    "tabId": "t1",
                    "chatTitle": "Hello\nworld",
                    "lastSendTime": JAN_2024_MS,
                    "bubbles": [{"type": "user", "text": "Hi"}],
                }
            ]
        },
    )

    conversations = await fetch_workspace_conversations("ws1", storage.paths)

    assert len(conversations) == 1
    conv = conversations[0]
    assert conv.id == "t1"
    assert conv.title == "Hello"
    assert [(m.role, m.content) for m in conv.messages] == [("user", "Hi")]
    # The global database is never needed for a chat-tab only workspace
    assert not storage.global_db.exists()


@pytest.mark.asyncio
async def test_global_bubbles_filtered_by_workspace(storage) -> None:
    """Only bubbles of composers listed in the workspace are attributed."""
    storage.add_workspace("ws1", composer_metadata={"allComposers": [{"composerId": "c1", "name": "Mine"}]})
    storage.add_global(
        {
            "composerData:c1": {"composerId": "c1", "name": "Mine", "lastUpdatedAt": FEB_2024_MS},
            "composerData:c2": {"composerId": "c2", "name": "Theirs"},
            "bubbleId:c1:b1": {"type": 1, "text": "Question"},
            "bubbleId:c1:b2": {"type": 0, "text": "Answer"},
            "bubbleId:c2:b3": {"type": 1, "text": "Someone else's question"},
        }
    )

    conversations = await fetch_workspace_conversations("ws1", storage.paths)

    assert [c.id for c in conversations] == ["c1"]
    assert [(m.role, m.content) for m in conversations[0].messages] == [
        ("user", "Question"),
        ("assistant", "Answer"),
    ]
    contents = {m.content for c in conversations for m in c.messages}
    assert "Someone else's question" not in contents


@pytest.mark.asyncio
async def test_composer_title_wins_over_chat_tab(storage) -> None:
    storage.add_workspace(
        "ws1",
        chat_data={
            "tabs": [
                {
                    "tabId": "t1",
                    "chatTitle": "Tab title",
                    "lastSendTime": JAN_2024_MS,
                    "bubbles": [{"type": "user", "text": "Hi"}],
                }
            ]
        },
        composer_metadata={"allComposers": [{"composerId": "t1"}]},
    )
    storage.add_global({"composerData:t1": {"composerId": "t1", "name": "Composer title"}})

    [conv] = await fetch_workspace_conversations("ws1", storage.paths)

    assert conv.title == "Composer title"


@pytest.mark.asyncio
async def test_header_order_applied(storage) -> None:
    storage.add_workspace("ws1", composer_metadata={"allComposers": [{"composerId": "c1"}]})
    storage.add_global(
        {
            "composerData:c1": {
                "composerId": "c1",
                "fullConversationHeadersOnly": [
                    {"bubbleId": "first", "type": 1},
                    {"bubbleId": "second", "type": 2},
                ],
            },
            "bubbleId:c1:second": {"type": 2, "text": "Second", "bubbleId": "second"},
            "bubbleId:c1:first": {"type": 1, "text": "First", "bubbleId": "first"},
            "bubbleId:c1:stray": {"type": 2, "text": "Stray"},
        }
    )

    [conv] = await fetch_workspace_conversations("ws1", storage.paths)

    assert [m.content for m in conv.messages] == ["First", "Second", "Stray"]


@pytest.mark.asyncio
async def test_blob_values_decoded(storage) -> None:
    storage.add_workspace("ws1", composer_metadata={"allComposers": [{"composerId": "c1"}]})
    storage.add_global(
        {
            "composerData:c1": b'{"composerId": "c1", "name": "Bytes"}',
            "bubbleId:c1:b1": '{"type": 1, "text": "stored as bytes"}'.encode(),
        }
    )

    [conv] = await fetch_workspace_conversations("ws1", storage.paths)

    assert conv.title == "Bytes"
    assert conv.messages[0].content == "stored as bytes"


@pytest.mark.asyncio
async def test_malformed_bubble_does_not_abort_scan(storage) -> None:
    storage.add_workspace("ws1", composer_metadata={"allComposers": [{"composerId": "c1"}]})
    storage.add_global(
        {
            "composerData:c1": {"composerId": "c1"},
            "bubbleId:c1:bad": "{broken",
            "bubbleId:c1:good": {"type": 1, "text": "still here"},
        }
    )

    [conv] = await fetch_workspace_conversations("ws1", storage.paths)

    assert [m.content for m in conv.messages] == ["still here"]


@pytest.mark.asyncio
async def test_invalid_utf8_bubble_does_not_abort_scan(storage) -> None:
    """A bubble whose bytes are not UTF-8 is skipped, the rest survive."""
    storage.add_workspace("ws1", composer_metadata={"allComposers": [{"composerId": "c1"}]})
    storage.add_global(
        {
            "composerData:c1": {"composerId": "c1"},
            "bubbleId:c1:b1": b'{"type":1,"text":"Hi"}',
            "bubbleId:c1:b2": b"\xff\xfe not utf8",
        }
    )

    [conv] = await fetch_workspace_conversations("ws1", storage.paths)

    assert [m.content for m in conv.messages] == ["Hi"]


@pytest.mark.asyncio
async def test_invalid_utf8_in_foreign_composer_ignored(storage) -> None:
    """A corrupt bubble of another workspace does not affect this one."""
    storage.add_workspace("ws1", composer_metadata={"allComposers": [{"composerId": "c1"}]})
    storage.add_global(
        {
            "composerData:c1": {"composerId": "c1"},
            "bubbleId:c1:b1": b'{"type":1,"text":"Mine"}',
            "bubbleId:other:b9": b"\xff\xfe not utf8",
        }
    )

    [conv] = await fetch_workspace_conversations("ws1", storage.paths)

    assert [m.content for m in conv.messages] == ["Mine"]


@pytest.mark.asyncio
async def test_whitespace_only_bubbles_create_nothing(storage) -> None:
    storage.add_workspace(
        "ws1",
        chat_data={"tabs": [{"tabId": "t1", "bubbles": [{"type": "user", "text": "  "}]}]},
        composer_metadata={"allComposers": [{"composerId": "c1"}]},
    )
    storage.add_global(
        {
            "composerData:c1": {"composerId": "c1", "conversation": [{"type": 1, "text": "\n"}]},
            "bubbleId:c1:b1": {"type": 1, "text": "\t"},
        }
    )

    assert await fetch_workspace_conversations("ws1", storage.paths) == []


@pytest.mark.asyncio
async def test_missing_workspace_database(storage) -> None:
    assert await fetch_workspace_conversations("does-not-exist", storage.paths) == []


@pytest.mark.asyncio
async def test_workspace_without_chat_keys(storage) -> None:
    storage.add_workspace("ws1")
    assert await fetch_workspace_conversations("ws1", storage.paths) == []


@pytest.mark.asyncio
async def test_malformed_chat_data_aborts_workspace(storage) -> None:
    storage.add_workspace(
        "ws1",
        chat_data="{this is not json",
        composer_metadata={"allComposers": []},
    )
    assert await fetch_workspace_conversations("ws1", storage.paths) == []


@pytest.mark.asyncio
async def test_malformed_composer_metadata_aborts_workspace(storage) -> None:
    storage.add_workspace(
        "ws1",
        chat_data={"tabs": [{"tabId": "t1", "bubbles": [{"type": "user", "text": "Hi"}]}]},
        composer_metadata="[1, 2",
    )
    assert await fetch_workspace_conversations("ws1", storage.paths) == []


@pytest.mark.asyncio
async def test_missing_global_database_yields_empty(storage) -> None:
    storage.add_workspace(
        "ws1",
        chat_data={"tabs": [{"tabId": "t1", "bubbles": [{"type": "user", "text": "Hi"}]}]},
        composer_metadata={"allComposers": [{"composerId": "c1"}]},
    )
    assert await fetch_workspace_conversations("ws1", storage.paths) == []


@pytest.mark.asyncio
async def test_corrupt_workspace_database(storage) -> None:
    db_path = storage.workspace_root / "ws1" / "state.vscdb"
    db_path.parent.mkdir(parents=True)
    db_path.write_bytes(b"definitely not sqlite" * 100)
    assert await fetch_workspace_conversations("ws1", storage.paths) == []


@pytest.mark.asyncio
async def test_stores_closed_on_failure(storage) -> None:
    storage.add_workspace("ws1", composer_metadata={"allComposers": [{"composerId": "c1"}]})
    storage.add_global({"composerData:c1": {"composerId": "c1"}})

    closed: list[str] = []
    original_close = KeyValueStore.close

    async def tracking_close(self: KeyValueStore) -> None:
        closed.append(self.db_path.name if self._table != GLOBAL_TABLE else "global")
        await original_close(self)

    async def failing_scan(self: KeyValueStore, prefix: str) -> list:
        raise sqlite3.OperationalError("disk I/O error")

    with (
        patch.object(KeyValueStore, "close", tracking_close),
        patch.object(KeyValueStore, "scan_prefix", failing_scan),
    ):
        result = await fetch_workspace_conversations("ws1", storage.paths)

    assert result == []
    assert sorted(closed) == ["global", "state.vscdb"]


@pytest.mark.asyncio
async def test_failure_is_logged(storage) -> None:
    storage.add_workspace("ws1", chat_data="not json")
    with patch.object(fetch_module.logger, "exception") as mock_exception:
        assert await fetch_workspace_conversations("ws1", storage.paths) == []
    mock_exception.assert_called_once()


@pytest.mark.asyncio
async def test_fetch_many_runs_each_workspace(storage) -> None:
    storage.add_workspace(
        "ws1",
        chat_data={"tabs": [{"tabId": "t1", "bubbles": [{"type": "user", "text": "one"}]}]},
    )
    storage.add_workspace(
        "ws2",
        chat_data={"tabs": [{"tabId": "t2", "bubbles": [{"type": "user", "text": "two"}]}]},
    )

    results = await fetch_many(["ws2", "missing", "ws1"], storage.paths)

    assert list(results) == ["ws2", "missing", "ws1"]
    assert [c.id for c in results["ws1"]] == ["t1"]
    assert [c.id for c in results["ws2"]] == ["t2"]
    assert results["missing"] == []


@pytest.mark.asyncio
async def test_query_contract_shape(storage) -> None:
    storage.add_workspace(
        "ws1",
        chat_data={
            "tabs": [
                {
                    "tabId": "t1",
                    "chatTitle": "Title",
                    "lastSendTime": JAN_2024_MS,
                    "bubbles": [{"type": "user", "text": "Hi", "id": "b1"}],
                }
            ]
        },
    )

    [conv] = await fetch_workspace_conversations("ws1", storage.paths)

    assert conv.to_dict() == {
        "id": "t1",
        "name": "Title",
        "messages": [
            {
                "role": "user",
                "content": "Hi",
                "id": "b1",
                "originalType": "user",
                "originalSource": "legacy-chat",
            }
        ],
        "createdAt": "2024-01-01T00:00:00.000Z",
        "lastUpdatedAt": "2024-01-01T00:00:00.000Z",
    }
