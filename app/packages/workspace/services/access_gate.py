"""公开/私有可见性判定。

| is_public | 已认证 | 项目成员 | 结果 |
|---|---|---|---|
| True  | 任意 | 任意 | 直接返回内容（不查成员关系） |
| False | 否   | -    | AccessDenied（未公开） |
| False | 是   | 是   | 不返回内容，给出应用内跳转地址 |
| False | 是   | 否   | AccessDenied |
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlencode

from app.packages.workspace.core.exceptions import AccessDenied
from app.packages.workspace.core.logger import logger

MembershipCheck = Callable[[str, str], bool]


@dataclass(frozen=True)
class AccessDecision:
    is_authenticated: bool
    redirect_to: Optional[str] = None

    @property
    def serve(self) -> bool:
        return self.redirect_to is None


class AccessGate:
    def __init__(self, is_member: MembershipCheck, *, app_path: str = "/app"):
        self._is_member = is_member
        self.app_path = app_path

    def redirect_target(self, **params: str) -> str:
        return f"{self.app_path}?{urlencode(params)}"

    def evaluate(
        self,
        *,
        is_public: bool,
        project_id: str,
        user_id: Optional[str],
        redirect_params: dict[str, str],
    ) -> AccessDecision:
        is_authenticated = user_id is not None
        if is_public:
            return AccessDecision(is_authenticated=is_authenticated)
        if not is_authenticated:
            raise AccessDenied("该内容未公开，请登录后访问")
        if not self._is_member(project_id, user_id):
            logger.info("Access denied for user %s on project %s", user_id, project_id, extra={"project_id": project_id})
            raise AccessDenied("没有访问权限")
        # 成员拥有完整编辑权限，应走应用内的认证路径
        return AccessDecision(is_authenticated=True, redirect_to=self.redirect_target(**redirect_params))

    def evaluate_node(self, *, is_public: bool, project_id: str, node_id: str, user_id: Optional[str]) -> AccessDecision:
        return self.evaluate(
            is_public=is_public, project_id=project_id, user_id=user_id, redirect_params={"open": node_id}
        )

    def evaluate_workspace(self, *, is_public: bool, workspace_id: str, user_id: Optional[str]) -> AccessDecision:
        return self.evaluate(
            is_public=is_public, project_id=workspace_id, user_id=user_id, redirect_params={"workspace": workspace_id}
        )
