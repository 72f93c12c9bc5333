from slotwise.models.timetable_generation import TimetableGenerationMetric
from slotwise.services.generation_metrics import METHOD_AI, METHOD_GENETIC


def test_settings_default_then_update(client, db_session):
    defaults = client.get("/api/generator/settings")
    assert defaults.status_code == 200
    assert defaults.json()["id"] == 1
    assert defaults.json()["population_size"] == 100
    assert defaults.json()["fitness_weights"]["room_conflict"] == 50.0

    payload = defaults.json()
    payload.pop("id")
    payload.update({"population_size": 60, "elite_count": 6, "random_seed": 99})
    payload["fitness_weights"]["capacity"] = 35.0

    updated = client.put("/api/generator/settings", json=payload)

    assert updated.status_code == 200
    assert updated.json()["population_size"] == 60
    assert client.get("/api/generator/settings").json()["fitness_weights"]["capacity"] == 35.0


def test_settings_reject_elite_count_not_below_population(client, db_session):
    response = client.put("/api/generator/settings", json={"population_size": 10, "elite_count": 10})
    assert response.status_code == 422


def test_settings_reject_out_of_range_rates(client, db_session):
    response = client.put("/api/generator/settings", json={"mutation_rate": 1.5})
    assert response.status_code == 422


def test_metrics_report_both_methods_and_recent_failures(client, db_session):
    db_session.add_all(
        [
            TimetableGenerationMetric(
                job_id="job-1",
                method=METHOD_GENETIC,
                duration_seconds=2.0,
                success=True,
                entries_generated=12,
                conflicts_count=1,
                academic_year="2024/2025",
                semester=1,
            ),
            TimetableGenerationMetric(
                job_id="job-2",
                method=METHOD_AI,
                duration_seconds=1.0,
                success=False,
                error_message="AI response was not valid JSON",
                academic_year="2024/2025",
                semester=1,
            ),
        ]
    )
    db_session.commit()

    response = client.get("/api/generator/metrics", params={"limit": 5})

    assert response.status_code == 200
    body = response.json()
    assert body["performance"][METHOD_GENETIC]["success_rate"] == 100.0
    assert body["performance"][METHOD_AI]["total_attempts"] == 1
    assert [item["job_id"] for item in body["recent_failures"]] == ["job-2"]


def test_recommendation_switches_after_term_failures(client, db_session):
    params = {"academic_year": "2024/2025", "semester": 1}
    assert client.get("/api/generator/recommendation", params=params).json()["recommended_method"] == METHOD_AI

    for index in range(2):
        db_session.add(
            TimetableGenerationMetric(
                job_id=f"failed-{index}",
                method=METHOD_AI,
                success=False,
                error_message="timeout",
                academic_year="2024/2025",
                semester=1,
            )
        )
    db_session.commit()

    body = client.get("/api/generator/recommendation", params=params).json()
    assert body == {"academic_year": "2024/2025", "semester": 1, "recommended_method": METHOD_GENETIC}


def test_recommendation_requires_term(client, db_session):
    assert client.get("/api/generator/recommendation").status_code == 422
