"""
Register a demo batch and append a few supply-chain events through the API.
Run:
    python scripts/seed_demo.py [API_URL]
"""
import sys
import time
import random
import requests

API = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

def main():
    r = requests.get(f"{API}/api/seed")
    print("Seed:", r.json())

    batch_id = f"BATCH_{random.randint(100, 999)}"
    rr = requests.post(f"{API}/api/batches", json={
        "batch_id": batch_id,
        "farmer": "Hill Top Growers",
        "plant_type": "Ashwagandha Root",
        "quantity_kg": round(random.uniform(100, 800), 1),
        "location": "Madhya Pradesh, India",
    })
    print("register", rr.status_code, rr.text)
    if rr.status_code != 201:
        return

    headers = {"X-Actor": "seed-script"}
    for test_type in ("Purity Analysis", "Heavy Metals", "Microbial Testing"):
        rr = requests.post(f"{API}/api/batches/{batch_id}/lab-tests", headers=headers, json={
            "test_type": test_type,
            "result": "Pass",
            "lab_id": "SafeTest Labs",
        })
        print("lab test", test_type, rr.status_code, rr.text)
        time.sleep(1)

    rr = requests.post(f"{API}/api/batches/{batch_id}/transport-events", headers=headers, json={
        "from_location": "Hill Top Growers",
        "to_location": "Central Drying Unit",
        "transporter_id": "AgroMove",
        "vehicle_id": "MP-09-4421",
    })
    print("transport:", rr.status_code, rr.text)

    rr = requests.post(f"{API}/api/batches/{batch_id}/processing-steps", headers=headers, json={
        "step_type": "Drying",
        "processor": "Central Drying Unit",
        "description": "Shade dried on mesh racks",
        "temperature_c": 40,
        "duration": "72h",
    })
    print("processing:", rr.status_code, rr.text)

    rr = requests.get(f"{API}/api/batches/{batch_id}/timeline")
    for entry in rr.json():
        print(entry["timestamp"], entry["title"], "-", entry["description"])

if __name__ == "__main__":
    main()
