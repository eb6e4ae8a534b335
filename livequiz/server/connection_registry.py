"""Connection registry: live sockets, their roles, and the player roster."""
import itertools
import logging
import uuid
from typing import Dict, List, Optional

from .errors import InvalidHandshake
from .protocol import AdminConnect, UserConnect
from .quiz_types import Connection, Player, Role

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Tracks registered connections and the players behind them.

    Players are keyed by an internal ``player_id``; the display name is only a
    label. A player handshake whose name matches a disconnected player
    re-attaches to that player so earlier answers still count.
    """

    def __init__(self) -> None:
        self.connections: Dict[str, Connection] = {}   # conn_id -> Connection
        self.players: Dict[str, Player] = {}           # player_id -> Player (registration order)
        self.admin_conn_id: Optional[str] = None
        self._order = itertools.count()

    # ---------- Registration ----------

    def register(self, conn_id: str, handshake: AdminConnect | UserConnect) -> Connection:
        """Register a connection from its handshake message."""
        if conn_id in self.connections:
            raise InvalidHandshake("Connection is already registered")

        if isinstance(handshake, AdminConnect):
            conn = Connection(conn_id=conn_id, role=Role.ADMIN)
            previous = self.admin_conn_id
            self.admin_conn_id = conn_id
            self.connections[conn_id] = conn
            if previous is not None:
                logger.info(f"[registry] admin {conn_id} replaces admin {previous}")
            else:
                logger.info(f"[registry] admin registered conn={conn_id}")
            return conn

        if isinstance(handshake, UserConnect):
            name = (handshake.name or "").strip()
            if not name:
                raise InvalidHandshake("Player name must not be empty")

            player = self._find_disconnected(name)
            if player is None:
                player = Player(
                    player_id=uuid.uuid4().hex[:8],
                    name=name,
                    order=next(self._order),
                )
                self.players[player.player_id] = player
                logger.info(f"[registry] player={name} id={player.player_id} registered conn={conn_id}")
            else:
                logger.info(f"[registry] player={name} id={player.player_id} reconnected conn={conn_id}")

            player.connected = True
            player.conn_id = conn_id
            conn = Connection(
                conn_id=conn_id, role=Role.PLAYER, player_id=player.player_id, name=name
            )
            self.connections[conn_id] = conn
            return conn

        raise InvalidHandshake("Handshake must declare a role")

    def deregister(self, conn_id: str) -> Optional[Connection]:
        """Forget a connection; its player stays on the roster as disconnected."""
        conn = self.connections.pop(conn_id, None)
        if conn is None:
            return None
        conn.connected = False

        if conn.role is Role.PLAYER:
            player = self.players.get(conn.player_id)
            if player is not None and player.conn_id == conn_id:
                player.connected = False
                player.conn_id = None
            logger.info(f"[registry] player={conn.name} disconnected conn={conn_id}")
        elif self.admin_conn_id == conn_id:
            self.admin_conn_id = None
            logger.info(f"[registry] admin disconnected conn={conn_id}")
        return conn

    def reset_roster(self) -> None:
        """Drop disconnected players, keeping connected ones for a new quiz."""
        for pid, player in list(self.players.items()):
            if not player.connected:
                del self.players[pid]

    # ---------- Lookups ----------

    def get(self, conn_id: str) -> Optional[Connection]:
        return self.connections.get(conn_id)

    def is_admin(self, conn_id: str) -> bool:
        return conn_id is not None and conn_id == self.admin_conn_id

    def list_players(self) -> List[dict]:
        return [p.to_dict() for p in self.players.values()]

    def online_players(self) -> List[Player]:
        return [p for p in self.players.values() if p.connected]

    def player_conn_ids(self) -> List[str]:
        return [p.conn_id for p in self.players.values() if p.connected and p.conn_id]

    def find_by_name(self, name: str) -> Optional[Connection]:
        """Most recently registered connected player with this name."""
        for player in reversed(list(self.players.values())):
            if player.name == name and player.connected and player.conn_id:
                return self.connections.get(player.conn_id)
        return None

    def _find_disconnected(self, name: str) -> Optional[Player]:
        for player in self.players.values():
            if player.name == name and not player.connected:
                return player
        return None
