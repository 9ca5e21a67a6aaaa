"""Server layout file -- which servers, queues and members to bring up.

Example::

    {
      "servers": [
        {
          "server_id": "cs101",
          "name": "CS 101",
          "queues": [{"name": "office-hours", "channel_id": "c-1"}],
          "members": [
            {"id": "u1", "display_name": "Ada", "roles": ["Staff", "office-hours"]},
            {"id": "u2", "display_name": "Grace"}
          ]
        }
      ]
    }
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field

from ..queue.members import Member
from ..queue.view import QueueChannel


class QueueLayout(BaseModel):
    name: str = Field(min_length=1)
    channel_id: str = ""


class MemberLayout(BaseModel):
    id: str = Field(min_length=1)
    display_name: str
    roles: list[str] = Field(default_factory=list)

    def to_member(self) -> Member:
        return Member(id=self.id, display_name=self.display_name, roles=frozenset(self.roles))


class ServerLayout(BaseModel):
    server_id: str = Field(min_length=1)
    name: str = ""
    queues: list[QueueLayout] = Field(default_factory=list)
    members: list[MemberLayout] = Field(default_factory=list)

    def queue_channels(self) -> list[QueueChannel]:
        return [
            QueueChannel(q.name, q.channel_id or f"{self.server_id}:{q.name}")
            for q in self.queues
        ]

    def to_members(self) -> list[Member]:
        return [m.to_member() for m in self.members]


class Layout(BaseModel):
    servers: list[ServerLayout] = Field(default_factory=list)

    @classmethod
    def load(cls, path: Path) -> Layout:
        return cls.model_validate(json.loads(path.read_text()))
