# EncodeGenerator.py
# Bootstrap a company's roster from photos:
#   images/<employee name>/*.jpg   (several photos per person)

import os
import sys

import cv2

from config import DATA_DIR
from embedding import FaceEmbeddingProvider
from enrollment import EnrollmentSession
from errors import NoFaceDetected, ValidationError
from models import EmployeeDraft
from ResourcePath import resource_path
from roster_store import RosterStore

FOLDER_PATH = "images"


def enroll_folder(session: EnrollmentSession, company_id: str, person_dir: str, name: str):
    for filename in sorted(os.listdir(person_dir)):
        if filename.startswith("."):
            continue

        img_path = os.path.join(person_dir, filename)
        img = cv2.imread(img_path)
        if img is None:
            print(f"Skipping unreadable file: {img_path}")
            continue

        try:
            session.capture(img)
        except NoFaceDetected:
            print(f"No face found in {img_path}, skipped")

    try:
        return session.commit(EmployeeDraft(company_id=company_id, name=name))
    except ValidationError as e:
        session.discard()
        print(f"Could not enroll {name}: {e}")
        return None


def main():
    if len(sys.argv) < 2:
        print("usage: python EncodeGenerator.py <company_id> [images_dir]")
        sys.exit(2)
    company_id = sys.argv[1]
    folder = resource_path(sys.argv[2] if len(sys.argv) > 2 else FOLDER_PATH)

    store = RosterStore(root_dir=DATA_DIR)
    if store.get_company(company_id) is None:
        print(f"Unknown company {company_id}")
        sys.exit(1)

    session = EnrollmentSession(store, FaceEmbeddingProvider(scale=1.0))

    print(f"Bootstrapping employees of {company_id} from {folder}/")

    created = 0
    for name in sorted(os.listdir(folder)):
        person_dir = os.path.join(folder, name)
        if name.startswith(".") or not os.path.isdir(person_dir):
            continue

        employee = enroll_folder(session, company_id, person_dir, name)
        if employee is None:
            continue
        print(f"Created employee {employee.id} ({employee.name}) from {employee.num_embeddings} photos")
        created += 1

    print(f"Bootstrap complete. {created} employees created.")


if __name__ == "__main__":
    main()
