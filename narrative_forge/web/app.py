"""
Flask web application for Narrative Forge - live text preview against a world
"""

import logging
from pathlib import Path

from flask import Flask, jsonify, request

from narrative_forge.cli.validate_cmd import ScriptValidator
from narrative_forge.logic.actions import parse_action_object
from narrative_forge.logic.errors import LogicError
from narrative_forge.world import build_engine, load_world

logger = logging.getLogger(__name__)


def _json_body():
    """Request body as a dict, or None when it is missing or not a JSON object"""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _params_from(raw):
    if raw is None or isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        return parse_action_object(raw)
    raise TypeError("params must be an object or a string")


def create_app(world=None, log_level=None):
    """Create and configure the Flask application"""
    app = Flask(__name__)

    if log_level:
        logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    app.config["WORLD"] = world or {}
    app.config["ENGINE"] = build_engine(app.config["WORLD"])

    @app.route("/api/resolve", methods=["POST"])
    def resolve_text():
        """Resolve a fragment; dry_run collects actions without running them"""
        data = _json_body()
        if data is None or not isinstance(data.get("text"), str):
            return jsonify({"error": "Expected a JSON object with a 'text' string"}), 400

        engine = app.config["ENGINE"]
        resolution = engine.resolve_string(data["text"], no_execute_actions=bool(data.get("dry_run")))

        return jsonify(
            {
                "output": resolution.output,
                "speaker": resolution.speaker,
                "actions": resolution.actions.to_dict(),
                "redirected": resolution.redirected,
            }
        )

    @app.route("/api/evaluate", methods=["POST"])
    def evaluate_params():
        """Evaluate the if/ifOr (or active/activeOr) clauses of a params object"""
        data = _json_body()
        if data is None:
            return jsonify({"error": "Expected a JSON object"}), 400

        try:
            params = _params_from(data.get("params"))
            result = app.config["ENGINE"].perform_conditional_evaluation(params, bool(data.get("active")))
        except (LogicError, TypeError) as e:
            return jsonify({"error": str(e)}), 400

        return jsonify({"result": result})

    @app.route("/api/choice", methods=["POST"])
    def build_choice():
        """Build a choice and report its state; "select": true also runs its actions"""
        data = _json_body()
        if data is None or not isinstance(data.get("id"), str):
            return jsonify({"error": "Expected a JSON object with an 'id' string"}), 400

        engine = app.config["ENGINE"]
        try:
            choice = engine.create_custom_choice(data["id"], data.get("name"), _params_from(data.get("params")))
            payload = {
                "id": choice.id,
                "name": choice.name,
                "display_name": choice.display_name,
                "visible": choice.is_visible,
                "available": choice.is_available,
                "params": choice.params.to_dict(),
            }
            if data.get("select"):
                payload["selected"] = choice.select()
        except (LogicError, TypeError) as e:
            return jsonify({"error": str(e)}), 400

        return jsonify(payload)

    @app.route("/api/validate", methods=["POST"])
    def validate_text():
        data = _json_body()
        if data is None or not isinstance(data.get("text"), str):
            return jsonify({"error": "Expected a JSON object with a 'text' string"}), 400

        validator = ScriptValidator(app.config["ENGINE"])
        issues = validator.validate(data["text"])
        return jsonify(
            {
                "valid": not validator.errors,
                "issues": [issue.to_dict() for issue in issues],
                "stats": validator.stats,
            }
        )

    @app.route("/api/flags")
    def get_flags():
        return jsonify(app.config["ENGINE"].flags.to_dict())

    return app


def main():
    """Run the development server"""
    import argparse

    parser = argparse.ArgumentParser(description="Narrative Forge Preview Server")
    parser.add_argument("--world", "-w", help="Path to a JSON world file", default=None)
    parser.add_argument("--port", "-p", help="Port to run on", type=int, default=5000)
    parser.add_argument("--log-level", help="Engine log level", default="INFO")
    parser.add_argument("--debug", help="Run in debug mode", action="store_true")

    args = parser.parse_args()

    world = load_world(Path(args.world)) if args.world else None
    app = create_app(world=world, log_level=args.log_level)

    print(f"\n{'=' * 60}")
    print("📜 Narrative Forge Preview")
    print(f"{'=' * 60}")
    print(f"\n🌍 World: {args.world or '(empty)'}")
    print(f"🌐 Server running at: http://localhost:{args.port}")
    print("\nPress Ctrl+C to stop\n")

    app.run(host="0.0.0.0", port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
