# roster_store.py

import os
import json
import threading
from typing import List, Optional, Sequence

import numpy as np

from errors import StorageError, ValidationError
from models import Company, Employee, EmployeeDraft, utc_now
from ResourcePath import resource_path


class RosterStore:
    """
    File-backed roster.

    Layout under root_dir:
        companies/<company_id>.json
        employees/<employee_id>/meta.json
        employees/<employee_id>/embeddings.npz   ("embeddings": (n, d) float32)

    An employee directory only counts once meta.json exists; meta.json is
    always written last.
    """

    def __init__(self, root_dir: str = "attendance_data"):
        self.root_dir = resource_path(root_dir)
        self._companies_dir = os.path.join(self.root_dir, "companies")
        self._employees_dir = os.path.join(self.root_dir, "employees")
        self._id_lock = threading.Lock()
        self._append_lock = threading.Lock()
        os.makedirs(self._companies_dir, exist_ok=True)
        os.makedirs(self._employees_dir, exist_ok=True)

    # ---------- Companies ----------

    def list_companies(self) -> List[Company]:
        companies = []
        try:
            names = sorted(os.listdir(self._companies_dir))
        except OSError as e:
            raise StorageError(f"cannot list companies: {e}") from e
        for name in names:
            if not name.endswith(".json"):
                continue
            company = self.get_company(name[: -len(".json")])
            if company is not None:
                companies.append(company)
        companies.sort(key=lambda c: c.name)
        return companies

    def get_company(self, company_id: str) -> Optional[Company]:
        path = os.path.join(self._companies_dir, f"{company_id}.json")
        if not os.path.exists(path):
            return None
        data = self._read_json(path)
        return Company(id=data["id"], name=data["name"])

    def create_company(self, name: str) -> Company:
        if not name or not name.strip():
            raise ValidationError("company name is required")
        with self._id_lock:
            company_id = self._next_id(self._companies_dir, "company_", ".json")
            company = Company(id=company_id, name=name.strip())
            path = os.path.join(self._companies_dir, f"{company_id}.json")
            self._write_json(path, {"id": company.id, "name": company.name, "created_at": self._now_iso()})
        return company

    # ---------- Employees: read side ----------

    def list_employees(self, company_id: str) -> List[Employee]:
        """All committed employees of a company, ordered by id."""
        employees = []
        try:
            names = sorted(os.listdir(self._employees_dir))
        except OSError as e:
            raise StorageError(f"cannot list employees: {e}") from e
        for employee_id in names:
            meta_path = os.path.join(self._employees_dir, employee_id, "meta.json")
            if not os.path.exists(meta_path):
                continue
            meta = self._read_json(meta_path)
            if meta.get("company_id") != company_id:
                continue
            employees.append(self._load_employee(employee_id, meta))
        return employees

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        meta_path = os.path.join(self._employees_dir, employee_id, "meta.json")
        if not os.path.exists(meta_path):
            return None
        return self._load_employee(employee_id, self._read_json(meta_path))

    def _load_employee(self, employee_id: str, meta: dict) -> Employee:
        emb_path = os.path.join(self._employees_dir, employee_id, "embeddings.npz")
        try:
            with np.load(emb_path) as data:
                embs = data["embeddings"].astype("float32")
        except (OSError, KeyError, ValueError) as e:
            raise StorageError(f"cannot load embeddings of {employee_id}: {e}") from e
        return Employee(
            id=employee_id,
            company_id=meta["company_id"],
            name=meta.get("name", ""),
            role=meta.get("role", ""),
            embeddings=embs,
            capture_sessions=list(meta.get("capture_sessions", [len(embs)])),
            created_at=meta.get("created_at"),
        )

    # ---------- Employees: write side ----------

    def insert_employee(self, draft: EmployeeDraft, embeddings: Sequence[np.ndarray]) -> Employee:
        embs = self._stack(embeddings)
        if self.get_company(draft.company_id) is None:
            raise ValidationError(f"unknown company {draft.company_id!r}")

        with self._id_lock:
            employee_id = self._next_id(self._employees_dir, "emp_", "")
            ident_dir = os.path.join(self._employees_dir, employee_id)
            try:
                os.makedirs(ident_dir, exist_ok=False)
            except OSError as e:
                raise StorageError(f"cannot create {ident_dir}: {e}") from e

        now = self._now_iso()
        meta = {
            "id": employee_id,
            "company_id": draft.company_id,
            "name": draft.name.strip(),
            "role": (draft.role or "").strip(),
            "created_at": now,
            "last_updated_at": now,
            "num_embeddings": int(embs.shape[0]),
            "capture_sessions": [int(embs.shape[0])],
        }
        self._save_embeddings(employee_id, embs)
        self._write_json(os.path.join(ident_dir, "meta.json"), meta)
        return self._load_employee(employee_id, meta)

    def append_embeddings(self, employee_id: str, embeddings: Sequence[np.ndarray]) -> Employee:
        """Append one whole capture session to an existing employee."""
        new_embs = self._stack(embeddings)
        # Read, extend and rewrite as one step so concurrent sessions are never lost
        with self._append_lock:
            employee = self.get_employee(employee_id)
            if employee is None:
                raise ValidationError(f"unknown employee {employee_id!r}")
            if employee.embeddings.size and employee.embeddings.shape[1] != new_embs.shape[1]:
                raise ValidationError("embedding dimensionality does not match the enrolled samples")

            embs = np.vstack([employee.embeddings, new_embs]).astype("float32")
            meta_path = os.path.join(self._employees_dir, employee_id, "meta.json")
            meta = self._read_json(meta_path)
            meta["num_embeddings"] = int(embs.shape[0])
            meta["capture_sessions"] = list(employee.capture_sessions) + [int(new_embs.shape[0])]
            meta["last_updated_at"] = self._now_iso()

            self._save_embeddings(employee_id, embs)
            self._write_json(meta_path, meta)
            return self._load_employee(employee_id, meta)

    # ---------- Helpers ----------

    def _now_iso(self) -> str:
        return utc_now().isoformat()

    @staticmethod
    def _stack(embeddings: Sequence[np.ndarray]) -> np.ndarray:
        if len(embeddings) == 0:
            raise ValidationError("at least one embedding is required")
        rows = [np.asarray(e, dtype="float32") for e in embeddings]
        if any(r.ndim != 1 for r in rows):
            raise ValidationError("embeddings must be 1D")
        if len({r.shape[0] for r in rows}) != 1:
            raise ValidationError("embeddings must share one dimensionality")
        return np.vstack(rows).astype("float32")

    @staticmethod
    def _next_id(directory: str, prefix: str, suffix: str) -> str:
        max_num = 0
        for name in os.listdir(directory):
            if not name.startswith(prefix) or not name.endswith(suffix):
                continue
            stem = name[len(prefix): len(name) - len(suffix)] if suffix else name[len(prefix):]
            try:
                max_num = max(max_num, int(stem))
            except ValueError:
                continue
        return f"{prefix}{max_num + 1:06d}"

    def _save_embeddings(self, employee_id: str, embs: np.ndarray):
        ident_dir = os.path.join(self._employees_dir, employee_id)
        tmp_path = os.path.join(ident_dir, "embeddings.tmp.npz")
        try:
            np.savez_compressed(tmp_path, embeddings=embs)
            os.replace(tmp_path, os.path.join(ident_dir, "embeddings.npz"))
        except OSError as e:
            raise StorageError(f"cannot save embeddings of {employee_id}: {e}") from e

    @staticmethod
    def _read_json(path: str) -> dict:
        try:
            with open(path, "r") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"cannot read {path}: {e}") from e

    @staticmethod
    def _write_json(path: str, data: dict):
        tmp_path = path + ".tmp"
        try:
            with open(tmp_path, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"cannot write {path}: {e}") from e
