from lens_visualization import plot_lens_cross_section, radial_profile
from common import get_params
import lens_model as lm
import matplotlib.pyplot as plt
import plotly.graph_objects as go
import streamlit as st

st.set_page_config(page_title="Lens layer profile", layout="wide")
st.header("Layer profile")

params = get_params()

with st.expander("📊 Layers", expanded=True):
    st.dataframe(lm.layers_frame(params), hide_index=True, width='stretch')

col_plot1, col_plot2 = st.columns(2)
with col_plot1:
    r, eps, mu = radial_profile(params)
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=r, y=eps, name="ε (dielectric)", line=dict(color='#DC3545', width=2, shape='hv')))
    fig.add_trace(go.Scatter(x=r, y=mu, name="μ (permeability)", line=dict(color='#007BFF', width=2, shape='hv')))
    fig.update_layout(
        title=f"<b>Radial profile</b> (R/r0 = {params.radius_ratio})",
        xaxis_title="Normalized radius r / R",
        yaxis_title="ε, μ",
        hovermode="x unified",
        template="plotly_white",
        height=500
    )
    st.plotly_chart(fig, width='stretch')

with col_plot2:
    section = plot_lens_cross_section(params)
    st.pyplot(section)
    plt.close(section)

radii = params.normalized_radii[:-1]
if any(b <= a for a, b in zip(radii, radii[1:])):
    st.warning("Layer radii are not strictly increasing; the service may reject this lens.")

too_large = [lm.layer_label(i, params) for i, radius in enumerate(params.normalized_radii)
             if radius > lm.radius_upper_bound(i, params)]
if too_large:
    st.warning(f"Radius above {lm.MAX_PHYSICAL_RADIUS} in layer(s): {', '.join(too_large)}")
