from __future__ import annotations
import os
from salonbook import create_app
from salonbook.config import TestingConfig

# "default" loads Config plus the optional APP_SETTINGS file.
CONFIGS = {"default": None, "testing": TestingConfig}


def main() -> None:
    config_name = os.environ.get("SALONBOOK_CONFIG", "default")
    if config_name not in CONFIGS:
        raise SystemExit(f"Unknown SALONBOOK_CONFIG '{config_name}', expected one of {sorted(CONFIGS)}")
    flask_app = create_app(CONFIGS[config_name])

    print(f"\n=== salonbook ({config_name}) ===")
    print(f"database: {flask_app.config['SQLALCHEMY_DATABASE_URI']}")
    print(f"slot step: {flask_app.config['SLOT_STEP_MINUTES']} min")
    for r in sorted(flask_app.url_map.iter_rules(), key=lambda x: x.rule):
        print(f"{','.join(sorted(r.methods - {'HEAD', 'OPTIONS'})):<18} {r.rule}")
    print("===============\n")

    debug_enabled = os.environ.get("FLASK_DEBUG", "0") in {"1", "true", "True"}
    flask_app.run(host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", 5000)), debug=debug_enabled)

if __name__ == "__main__":
    main()
