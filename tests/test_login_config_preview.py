from appconfig.services.login_config import merge_with_defaults, validate_login_config
from appconfig.services.preview import background_style, build_preview, button_style, resolve_device_config


def test_validate_login_config_collects_every_error():
    errors = validate_login_config(
        {
            "branding": {"primaryColor": "red", "accentColor": "#12345"},
            "background": {"type": "plasma", "gradientStops": "nope"},
            "layout": {"layout": "diagonal"},
            "theme": "neon",
        }
    )
    assert errors == [
        "Invalid primary color format",
        "Invalid accent color format",
        "Invalid background type",
        "Gradient stops must be an array",
        "Invalid layout type",
        "Invalid theme value",
    ]


def test_validate_login_config_accepts_css_color_functions():
    config = {"branding": {"primaryColor": "rgb(10, 20, 30)", "secondaryColor": "hsla(120, 50%, 50%, 0.5)"}}
    assert validate_login_config(config) == []


def test_merge_with_defaults_keeps_unspecified_fields():
    merged = merge_with_defaults({"form": {"buttonStyle": "outline", "showRememberMe": None}, "theme": "dark"})
    assert merged["form"]["buttonStyle"] == "outline"
    assert merged["form"]["showRememberMe"] is True
    assert merged["theme"] == "dark"
    assert merged["layout"]["layout"] == "centered"


def test_gradient_background_style():
    style = background_style(
        {
            "background": {
                "type": "gradient",
                "gradientDirection": "to bottom",
                "gradientStops": [{"color": "#000", "position": 0}, {"color": "#fff", "position": 100}],
                "opacity": 0.5,
                "blur": 4,
            }
        }
    )
    assert style == {
        "background": "linear-gradient(to bottom, #000 0%, #fff 100%)",
        "opacity": 0.5,
        "filter": "blur(4px)",
    }


def test_outline_button_uses_primary_color():
    style = button_style(
        {
            "branding": {"primaryColor": "#ff0000"},
            "form": {"buttonStyle": "outline", "buttonSize": "large", "buttonBorderRadius": "full"},
        }
    )
    assert style["border"] == "2px solid #ff0000"
    assert style["color"] == "#ff0000"
    assert style["padding"] == "1rem 2rem"
    assert style["borderRadius"] == "9999px"
    assert style["width"] == "auto"


def test_device_block_overrides_only_when_responsive_enabled():
    config = {
        "layout": {"layout": "split", "maxWidth": "400px"},
        "mobile": {"layout": {"layout": "centered"}},
        "responsive": {"enableResponsiveConfig": False},
    }
    assert resolve_device_config(config, "mobile")["layout"]["layout"] == "split"

    config["responsive"]["enableResponsiveConfig"] = True
    resolved = resolve_device_config(config, "mobile")
    assert resolved["layout"] == {"layout": "centered", "maxWidth": "400px"}


def test_signup_preview_lists_fields_from_auth_flow_policy():
    branding = {"flows": {"signup": {"passwordPolicy": "strong", "termsAcceptedOn": "both"}}}
    preview = build_preview(merge_with_defaults({}), screen="signup", device="desktop", branding=branding)

    names = [field["name"] for field in preview["fields"]]
    assert names == ["name", "email", "password", "acceptTerms"]
    assert preview["fields"][2]["hint"].startswith("At least 12 characters")
    assert preview["screen"] == "signup"


def test_login_config_endpoints(api_client, create_application):
    application = create_application()
    base = f"/api/v1/admin/applications/{application['id']}/login-config"

    initial = api_client.get(base).json()["config"]
    assert initial["branding"]["appName"] == "Acme Mobile"
    assert initial["theme"] == "light"

    invalid = api_client.put(base, json={"config": {"theme": "neon"}})
    assert invalid.status_code == 400
    assert invalid.json()["detail"]["errors"] == ["Invalid theme value"]

    saved = api_client.put(
        base,
        json={"config": {"theme": "dark", "branding": {"primaryColor": "#222222"}, "form": {"buttonStyle": "ghost"}}},
    )
    assert saved.status_code == 200
    config = saved.json()["config"]
    assert config["theme"] == "dark"
    assert config["branding"]["primaryColor"] == "#222222"
    assert config["form"]["buttonStyle"] == "ghost"
    assert config["form"]["showForgotPassword"] is True

    public = api_client.get("/api/v1/public/applications/acme-mobile/login-config").json()["config"]
    assert public == config

    reset = api_client.post(f"{base}/reset").json()["config"]
    assert reset["theme"] == "light"
    assert reset["form"]["buttonStyle"] == "solid"


def test_clone_login_config_keeps_target_name(api_client, create_application):
    source = create_application()
    target = create_application(slug="acme-kids", name="Acme Kids")
    base = "/api/v1/admin/applications"

    api_client.put(f"{base}/{source['id']}/login-config", json={"config": {"theme": "dark"}})

    same = api_client.post(f"{base}/{source['id']}/login-config/clone/{source['id']}")
    assert same.status_code == 400

    cloned = api_client.post(f"{base}/{source['id']}/login-config/clone/{target['id']}")
    assert cloned.status_code == 200
    config = cloned.json()["config"]
    assert config["theme"] == "dark"
    assert config["branding"]["appName"] == "Acme Kids"


def test_preview_endpoint_applies_overrides(api_client, create_application):
    application = create_application()

    response = api_client.post(
        f"/api/v1/admin/applications/{application['id']}/preview/login",
        params={"device": "mobile"},
        json={"config": {"layout": {"layout": "split"}}},
    )

    assert response.status_code == 200
    preview = response.json()
    assert preview["device"] == "mobile"
    assert preview["layout"] == "split"
    assert preview["showSplitImage"] is False
    assert "fields" not in preview
