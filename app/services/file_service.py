# -*- coding: utf-8 -*-
"""
文件服务

处理目录/文件记录的增删改查，以及用户可见范围的计算

可见范围规则:
    - 私有范围：userId 等于当前用户的目录和文件
    - 共享范围：共享目录（userId 为空）在 allowedUserIds 中直接授权当前用户时，
      该目录及其所有下级共享目录都可见；共享文件只有位于可见共享目录中才可见
"""

import base64
import binascii
import logging
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from app.core.context import AppContext
from app.core.exceptions import InvalidInputError, NotFoundError
from app.core.store import FILES_KEY, FOLDERS_KEY
from app.models.file import (
    FileDelete,
    FileMeta,
    FileRecord,
    FileUpdate,
    FileUpload,
    FolderCreate,
    FolderRecord,
    sanitize
)


logger = logging.getLogger(__name__)


def collect_descendants(root_ids: Iterable[str], folders: Iterable[FolderRecord]) -> Set[str]:
    """
    收集若干根目录及其所有下级目录的 ID

    以 parentId 建立子目录索引后做广度优先遍历，已访问集合保证
    数据中出现环时也能结束

    Args:
        root_ids: 起始目录 ID
        folders: 参与遍历的目录（调用方负责限定范围）

    Returns:
        Set[str]: 包含起始目录在内的全部可达目录 ID
    """
    children: Dict[str, List[str]] = defaultdict(list)
    for folder in folders:
        if folder.parent_id:
            children[folder.parent_id].append(folder.id)

    visited: Set[str] = set()
    queue = deque(root_ids)
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        queue.extend(child for child in children.get(current, ()) if child not in visited)

    return visited


@dataclass
class VisibleScope:
    """用户可见的目录和文件"""
    folders: List[FolderRecord] = field(default_factory=list)
    files: List[FileRecord] = field(default_factory=list)


class FolderAccessResolver:
    """计算用户可见范围（每次请求重新计算，无缓存、无副作用）"""

    @staticmethod
    def shared_folder_ids(user_id: str, folders: List[FolderRecord]) -> Set[str]:
        shared = [f for f in folders if f.is_shared]
        granted = [f.id for f in shared if user_id in f.allowed_user_ids]
        if not granted:
            return set()
        return collect_descendants(granted, shared)

    @classmethod
    def visible_scope(
        cls,
        user_id: str,
        folders: List[FolderRecord],
        files: List[FileRecord]
    ) -> VisibleScope:
        """
        计算可见范围

        Args:
            user_id: 用户 ID
            folders: 全部目录
            files: 全部文件

        Returns:
            VisibleScope: 可见的目录和文件（保持原有顺序）
        """
        if not user_id:
            return VisibleScope()

        shared_ids = cls.shared_folder_ids(user_id, folders)

        visible_folders = [
            f for f in folders
            if f.user_id == user_id or (f.is_shared and f.id in shared_ids)
        ]
        visible_files = [
            f for f in files
            if f.user_id == user_id or (f.is_shared and f.folder_id and f.folder_id in shared_ids)
        ]
        return VisibleScope(folders=visible_folders, files=visible_files)


class FileService:
    """文件服务"""

    def __init__(self, ctx: AppContext):
        """
        初始化文件服务

        Args:
            ctx: 应用上下文
        """
        self.store = ctx.store
        self.clock = ctx.clock
        self.max_file_bytes = ctx.settings.MAX_FILE_BYTES

    # -------------------------------------------------------------------------
    # 存取
    # -------------------------------------------------------------------------

    def load_folders(self) -> List[FolderRecord]:
        records = (FolderRecord.from_raw(raw) for raw in self.store.get_json_list(FOLDERS_KEY))
        return [r for r in records if r is not None]

    def save_folders(self, folders: List[FolderRecord]) -> None:
        self.store.set_json(FOLDERS_KEY, [f.to_storage() for f in folders])

    def load_files(self) -> List[FileRecord]:
        records = (FileRecord.from_raw(raw) for raw in self.store.get_json_list(FILES_KEY))
        return [r for r in records if r is not None]

    def save_files(self, files: List[FileRecord]) -> None:
        self.store.set_json(FILES_KEY, [f.to_storage() for f in files])

    @staticmethod
    def _scoped(folders: List[FolderRecord], user_id: str) -> List[FolderRecord]:
        return [f for f in folders if f.user_id == user_id]

    @staticmethod
    def _normalize_folder_id(value: Optional[str], scoped: List[FolderRecord]) -> str:
        """不存在于当前范围的目录 ID 视为根级"""
        folder_id = sanitize(value, 80)
        if not folder_id:
            return ""
        return folder_id if any(f.id == folder_id for f in scoped) else ""

    @staticmethod
    def _metas(files: List[FileRecord], folders: List[FolderRecord]) -> List[FileMeta]:
        names = {f.id: f.name for f in folders}
        return [FileMeta.from_record(f, names.get(f.folder_id, "")) for f in files]

    # -------------------------------------------------------------------------
    # 查询
    # -------------------------------------------------------------------------

    def visible_scope(self, user_id: str) -> VisibleScope:
        return FolderAccessResolver.visible_scope(user_id, self.load_folders(), self.load_files())

    def list_for_user(self, user_id: str) -> Tuple[List[FileMeta], List[FolderRecord]]:
        """
        列出用户可见的文件和目录

        Returns:
            Tuple[List[FileMeta], List[FolderRecord]]: 文件元数据, 目录
        """
        scope = self.visible_scope(user_id)
        return self._metas(scope.files, scope.folders), scope.folders

    def list_scope(self, user_id: str = "", folder_id: str = "") -> Tuple[List[FileMeta], List[FolderRecord]]:
        """
        管理员按范围列出文件和目录

        Args:
            user_id: 所属用户，空表示共享范围
            folder_id: 可选的目录过滤
        """
        user_id = sanitize(user_id, 80)
        folder_id = sanitize(folder_id, 80)
        folders = self.load_folders()
        files = [f for f in self.load_files() if f.user_id == user_id]
        if folder_id:
            files = [f for f in files if f.folder_id == folder_id]
        return self._metas(files, folders), self._scoped(folders, user_id)

    def get_file(self, file_id: str) -> FileRecord:
        file_id = sanitize(file_id, 80)
        for record in self.load_files():
            if record.id == file_id:
                return record
        raise NotFoundError("File not found.")

    def get_visible_file(self, user_id: str, file_id: str) -> FileRecord:
        """取用户可见范围内的文件，不可见与不存在同样返回 404"""
        file_id = sanitize(file_id, 80)
        for record in self.visible_scope(user_id).files:
            if record.id == file_id:
                return record
        raise NotFoundError("File not found.")

    @staticmethod
    def decode_content(record: FileRecord) -> bytes:
        return base64.b64decode(record.content_base64)

    # -------------------------------------------------------------------------
    # 修改
    # -------------------------------------------------------------------------

    def create_folder(self, data: FolderCreate, created_by: str = "") -> FolderRecord:
        """
        创建目录

        Raises:
            InvalidInputError: 名称为空或同级已存在同名目录
        """
        name = sanitize(data.name, 80)
        if not name:
            raise InvalidInputError("Folder name is required.")

        user_id = sanitize(data.user_id, 80)
        folders = self.load_folders()
        scoped = self._scoped(folders, user_id)
        parent_id = self._normalize_folder_id(data.parent_id, scoped)

        lower = name.lower()
        if any(f.parent_id == parent_id and f.name.lower() == lower for f in scoped):
            raise InvalidInputError("A folder with this name already exists.")

        folder = FolderRecord(
            id=str(uuid.uuid4()),
            name=name,
            user_id=user_id,
            parent_id=parent_id,
            allowed_user_ids=[],
            created_at=self.clock.isoformat(),
            created_by=created_by
        )
        folders.insert(0, folder)
        self.save_folders(folders)

        logger.info(f"创建目录: {name} (范围: {user_id or '共享'})")
        return folder

    def upload_file(self, data: FileUpload, uploaded_by: str = "") -> FileRecord:
        """
        上传文件

        Raises:
            InvalidInputError: 文件名/内容缺失、内容无法解码或超过大小限制
        """
        file_name = sanitize(data.file_name, 180)
        content = str(data.content_base64 or "").strip()
        if not file_name:
            raise InvalidInputError("File name is required.")
        if not content:
            raise InvalidInputError("File content is required.")

        try:
            payload = base64.b64decode(content)
        except (binascii.Error, ValueError):
            raise InvalidInputError("File content is invalid.")
        if not payload:
            raise InvalidInputError("File content is invalid.")
        if len(payload) > self.max_file_bytes:
            raise InvalidInputError("File is too large. Max allowed size is 2 MB.")

        user_id = sanitize(data.user_id, 80)
        scoped = self._scoped(self.load_folders(), user_id)
        files = self.load_files()

        record = FileRecord(
            id=str(uuid.uuid4()),
            file_name=file_name,
            title=sanitize(data.title, 120) or file_name,
            notes=sanitize(data.notes, 500),
            mime_type=sanitize(data.mime_type, 120) or "application/octet-stream",
            size=len(payload),
            folder_id=self._normalize_folder_id(data.folder_id, scoped),
            user_id=user_id,
            content_base64=content,
            created_at=self.clock.isoformat(),
            uploaded_by=uploaded_by
        )
        files.insert(0, record)
        self.save_files(files)

        logger.info(f"上传文件: {file_name} ({record.size} 字节)")
        return record

    def set_folder_grants(self, folder_id: str, user_ids) -> FolderRecord:
        """替换目录的授权用户列表（去重）"""
        folders = self.load_folders()
        target = next((f for f in folders if f.id == folder_id), None)
        if target is None:
            raise NotFoundError("Folder not found.")

        values = user_ids if isinstance(user_ids, list) else []
        grants = []
        for value in values:
            clean = sanitize(value, 80)
            if clean and clean not in grants:
                grants.append(clean)
        target.allowed_user_ids = grants
        self.save_folders(folders)

        logger.info(f"更新目录授权: {folder_id} -> {len(grants)} 个用户")
        return target

    def update(self, data: FileUpdate) -> None:
        """
        更新目录授权或文件属性

        请求中出现 allowedUserIds 时修改目录授权，否则按出现的字段修改文件
        """
        item_id = sanitize(data.id, 80)
        if not item_id:
            raise InvalidInputError("File id is required.")

        present = data.model_fields_set
        if "allowed_user_ids" in present:
            self.set_folder_grants(item_id, data.allowed_user_ids)
            return

        files = self.load_files()
        record = next((f for f in files if f.id == item_id), None)
        if record is None:
            raise NotFoundError("File not found.")

        user_id = record.user_id or sanitize(data.user_id, 80)
        scoped = self._scoped(self.load_folders(), user_id)

        if "folder_id" in present:
            record.folder_id = self._normalize_folder_id(data.folder_id, scoped)
        if "title" in present:
            record.title = sanitize(data.title, 120) or record.file_name
        if "notes" in present:
            record.notes = sanitize(data.notes, 500)

        self.save_files(files)

    def delete_folder(self, folder_id: str) -> Set[str]:
        """
        删除目录及同一范围内的全部下级目录

        目录中的文件不删除，只移到根级

        Returns:
            Set[str]: 被删除的目录 ID
        """
        folders = self.load_folders()
        folder = next((f for f in folders if f.id == folder_id), None)
        if folder is None:
            raise NotFoundError("Folder not found.")

        owner = folder.user_id
        removed = collect_descendants([folder_id], self._scoped(folders, owner))

        remaining = [f for f in folders if f.id not in removed]
        files = self.load_files()
        for record in files:
            if record.user_id == owner and record.folder_id in removed:
                record.folder_id = ""

        self.save_folders(remaining)
        self.save_files(files)

        logger.info(f"删除目录: {folder_id}（共 {len(removed)} 个）")
        return removed

    def delete_file(self, file_id: str, user_id: str = "") -> None:
        """
        删除文件

        Args:
            file_id: 文件 ID
            user_id: 指定时要求文件属于该用户
        """
        file_id = sanitize(file_id, 80)
        if not file_id:
            raise InvalidInputError("File id is required.")

        files = self.load_files()
        record = next((f for f in files if f.id == file_id), None)
        if record is None:
            raise NotFoundError("File not found.")
        if user_id and record.user_id != user_id:
            raise InvalidInputError("File does not belong to this user.")

        self.save_files([f for f in files if f.id != file_id])
        logger.info(f"删除文件: {file_id}")

    def delete(self, data: FileDelete) -> None:
        folder_id = sanitize(data.folder_id, 80)
        if folder_id:
            self.delete_folder(folder_id)
        else:
            self.delete_file(data.id, sanitize(data.user_id, 80))

    def ensure_project_folder(self, user_id: str, project: str, created_by: str = "") -> Optional[FolderRecord]:
        """
        确保存在以项目命名的共享根目录，并授权给指定用户

        同名（不区分大小写）的共享根目录已存在时复用
        """
        name = sanitize(project, 80)
        if not user_id or not name:
            return None

        folders = self.load_folders()
        lower = name.lower()
        target = next(
            (f for f in folders if f.is_shared and not f.parent_id and f.name.lower() == lower),
            None
        )
        if target is None:
            target = FolderRecord(
                id=str(uuid.uuid4()),
                name=name,
                user_id="",
                parent_id="",
                allowed_user_ids=[],
                created_at=self.clock.isoformat(),
                created_by=created_by
            )
            folders.insert(0, target)

        if user_id not in target.allowed_user_ids:
            target.allowed_user_ids.append(user_id)
        self.save_folders(folders)

        logger.info(f"项目目录 {name} 已授权给用户 {user_id}")
        return target
